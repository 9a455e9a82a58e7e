"""Credential value objects passed between the store and the token manager."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class TokenSet:
    """
    Token material for one account on one provider.

    ``expires_at`` is a unix timestamp.
    """

    account_id: str
    provider: str
    access_token: str
    refresh_token: Optional[str]
    expires_at: int
    scope: Optional[str] = None
    external_athlete_id: Optional[str] = None

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def expires_within(self, seconds: float, now: float) -> bool:
        return self.expires_at - now < seconds
