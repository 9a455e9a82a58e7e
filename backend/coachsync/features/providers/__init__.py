"""
Platform adapters.

Usage:
    from coachsync.features.providers import get_adapter

    adapter = get_adapter("strava")
"""

from .base import ProviderAdapter
from .strava import StravaAdapter
from .hevy import HevyAdapter

ADAPTERS: dict[str, ProviderAdapter] = {
    adapter.name: adapter
    for adapter in (StravaAdapter(), HevyAdapter())
}


def get_adapter(name: str) -> ProviderAdapter:
    """
    Look up an adapter by provider name.

    Raises:
        ValueError: Unknown provider
    """
    try:
        return ADAPTERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown provider '{name}'. Known: {', '.join(sorted(ADAPTERS))}"
        ) from None


__all__ = [
    "ProviderAdapter",
    "StravaAdapter",
    "HevyAdapter",
    "ADAPTERS",
    "get_adapter",
]
