"""
HTTP response cache.

Usage:
    from coachsync.features.cache import FileCacheStore, key_for

    store = FileCacheStore("~/.coach_cache/strava")
    key = store.key_for("/athlete/activities", {"page": 1})
    entry = store.read(key, max_age=3600)
"""

from .entry import CacheEntry
from .keys import key_for, url_to_key
from .store import CacheStore, FileCacheStore, MemoryCacheStore

__all__ = [
    "CacheEntry",
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "key_for",
    "url_to_key",
]
