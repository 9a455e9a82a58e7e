"""
Conditional HTTP fetcher and the typed reads built on it.

Usage:
    from coachsync.features.fetcher import ConditionalFetcher, FetcherConfig, StravaReads
"""

from .client import ConditionalFetcher, FetcherConfig
from .reads import READ_TTL, HevyReads, StravaReads

__all__ = [
    "ConditionalFetcher",
    "FetcherConfig",
    "StravaReads",
    "HevyReads",
    "READ_TTL",
]
