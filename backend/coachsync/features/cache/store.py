"""
Response cache stores.

One capability interface (read, write, etag, key_for) implemented
directly by every backend:

- FileCacheStore: one JSON document per key, atomic rename-on-write
- MemoryCacheStore: process-local dict, used in tests and short-lived tools
"""

import base64
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Union

from coachsync.shared.clock import utcnow
from coachsync.shared.errors import CacheUnavailableError
from .entry import CacheEntry
from .keys import Params, key_for

logger = logging.getLogger(__name__)

MaxAge = Union[float, timedelta]


def _max_age_seconds(max_age: MaxAge) -> float:
    if isinstance(max_age, timedelta):
        return max_age.total_seconds()
    return float(max_age)


class CacheStore(ABC):
    """
    Key/value store of response bodies with ETag metadata.

    ``read(key, max_age)`` semantics:
    - missing entry -> None
    - ``max_age > 0`` and entry older than ``max_age`` -> None (stale)
    - ``max_age == 0`` -> the entry at any age, for ETag revalidation
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    @abstractmethod
    def _load(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry regardless of age."""

    @abstractmethod
    def _store(self, entry: CacheEntry) -> None:
        """Persist an entry atomically."""

    def read(self, key: str, max_age: MaxAge = 0) -> Optional[CacheEntry]:
        entry = self._load(key)
        if entry is None:
            return None

        limit = _max_age_seconds(max_age)
        if limit > 0 and entry.age_seconds(self._clock()) > limit:
            return None
        return entry

    def write(self, key: str, entry: CacheEntry) -> CacheEntry:
        """Store ``entry`` under ``key``, stamping ``fetched_at`` with now."""
        stored = replace(entry, key=key, fetched_at=self._clock())
        self._store(stored)
        return stored

    def etag(self, key: str) -> Optional[str]:
        """ETag of the entry at any age, None if absent."""
        entry = self.read(key, 0)
        return entry.etag if entry else None

    def key_for(self, path: str, params: Optional[Params] = None) -> str:
        return key_for(path, params)


class MemoryCacheStore(CacheStore):
    """In-process cache store."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self._entries: dict[str, CacheEntry] = {}

    def _load(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class FileCacheStore(CacheStore):
    """
    Filesystem cache store.

    Layout: ``<directory>/<key>.json`` containing
    ``{"key", "etag", "fetched_at", "body"}`` with a base64 body.
    Writes go to a temporary file in the same directory and are
    moved into place with ``os.replace`` so readers never see a
    partial document.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        clock: Callable[[], datetime] = utcnow
    ):
        super().__init__(clock)
        self.directory = Path(directory).expanduser()

    @classmethod
    def for_provider(cls, base_dir: Union[str, Path], provider: str) -> "FileCacheStore":
        """Cache rooted at ``<base_dir>/<provider>``."""
        return cls(Path(base_dir) / provider)

    def path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _load(self, key: str) -> Optional[CacheEntry]:
        path = self.path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheUnavailableError(f"Cannot read cache entry {path}: {e}") from e

        try:
            data = json.loads(raw)
            return CacheEntry(
                key=data["key"],
                etag=data.get("etag") or None,
                fetched_at=datetime.fromisoformat(data["fetched_at"]),
                body=base64.b64decode(data["body"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            # Corrupt documents are treated as misses and overwritten later
            logger.warning(f"Ignoring corrupt cache entry {path}: {e}")
            return None

    def _store(self, entry: CacheEntry) -> None:
        document = json.dumps(
            {
                "key": entry.key,
                "etag": entry.etag,
                "fetched_at": entry.fetched_at.isoformat(),
                "body": base64.b64encode(entry.body).decode("ascii"),
            },
            indent=2,
        )

        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.directory,
                prefix=f".{entry.key}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(document)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path(entry.key))
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheUnavailableError(
                f"Cannot write cache entry {entry.key}: {e}"
            ) from e
