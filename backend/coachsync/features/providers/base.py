"""
Provider adapter interface.

An adapter describes how one platform exposes its activity feed: where it
lives, how requests are authenticated, how pages are requested and how a
feed item becomes an ActivityData. The fetcher and the sync engine are
shared; everything platform-specific lives here.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from coachsync.features.activities.schemas import ActivityData
from coachsync.shared.errors import DecodeError


class ProviderAdapter(ABC):
    """Platform description consumed by ConditionalFetcher and SyncEngine."""

    name: str
    api_base: str
    activities_path: str

    # True when page_params() already restricts the feed to items after `since`
    filters_since_server_side: bool = True

    # Largest page the platform accepts
    max_page_size: int = 200

    def auth_headers(self, token: str) -> dict[str, str]:
        """Headers that authenticate a request with ``token``."""
        return {"Authorization": f"Bearer {token}"}

    def effective_page_size(self, page_size: int) -> int:
        return max(1, min(page_size, self.max_page_size))

    @abstractmethod
    def page_params(self, page: int, since: datetime, page_size: int) -> dict[str, Any]:
        """Query parameters for one feed page (pages start at 1)."""

    @abstractmethod
    def decode_page(self, payload: Any) -> list[dict]:
        """Extract feed items from a decoded page body."""

    @abstractmethod
    def to_activity(self, item: dict) -> ActivityData:
        """Map one feed item to ActivityData."""

    def is_last_page(self, payload: Any, page: int) -> bool:
        """True when the payload itself says no further pages exist."""
        return False

    def _require(self, item: dict, field: str) -> Any:
        value = item.get(field)
        if value is None:
            raise DecodeError(f"{self.name} item is missing '{field}'")
        return value

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
