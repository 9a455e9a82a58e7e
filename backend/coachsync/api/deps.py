"""
Shared route dependencies.

Overridable in tests through ``app.dependency_overrides``.
"""

from fastapi import HTTPException

from coachsync.features.credentials import OAuthClient
from coachsync.features.providers import ProviderAdapter, get_adapter


def get_oauth_client() -> OAuthClient:
    """OAuth client of the only OAuth provider (Strava)."""
    return OAuthClient.strava()


def resolve_provider(provider: str) -> ProviderAdapter:
    """Map a provider path/query value to its adapter or answer 400."""
    try:
        return get_adapter(provider)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
