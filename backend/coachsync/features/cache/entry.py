"""Cached HTTP response."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached response body with its validator.

    ``fetched_at`` is always assigned by the store at write time;
    whatever the caller passes is ignored.
    """

    key: str
    body: bytes
    etag: Optional[str] = None
    fetched_at: Optional[datetime] = None

    def age_seconds(self, now: datetime) -> float:
        if self.fetched_at is None:
            return float("inf")
        return (now - self.fetched_at).total_seconds()
