"""
Cache key generation.

Keys are filesystem-safe, readable where possible, and always carry a
digest of the canonical request so that two requests that sanitize to the
same slug still get distinct keys. Overlong keys are replaced by a full
digest instead of being truncated.

The canonical request is the path plus the sorted list of (name, value)
pairs, so names or values containing ``=`` or ``&`` cannot be confused
with a different parameter set, and repeated names keep every value.
"""

import hashlib
import json
import re
from typing import Any, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

MAX_KEY_LENGTH = 200

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._=-]")

# A mapping, or a pair list when a name repeats
Params = Union[Mapping[str, Any], Sequence[tuple[str, Any]]]


def _pairs(params: Optional[Params]) -> list[tuple[str, str]]:
    if not params:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    return sorted((str(k), str(v)) for k, v in items)


def key_for(path: str, params: Optional[Params] = None) -> str:
    """
    Build a stable cache key from a request path and its query parameters.

    Parameter order never matters: ``{"a": 1, "b": 2}`` and
    ``{"b": 2, "a": 1}`` produce the same key.

    Example:
        key_for("/athlete/activities", {"page": 1, "per_page": 50})
        -> "_athlete_activities__page=1__per_page=50.<16 hex digest chars>"
    """
    pairs = _pairs(params)
    canonical = json.dumps([path, pairs], separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    slug = path.replace("/", "_")
    if pairs:
        slug = f"{slug}__{urlencode(pairs).replace('&', '__')}"
    slug = _UNSAFE_CHARS.sub("_", slug)

    key = f"{slug}.{digest[:16]}"
    if len(key) > MAX_KEY_LENGTH:
        return f"hash_{digest}"
    return key


def url_to_key(url: str) -> str:
    """
    Build a cache key from a full URL.

    Host and path form the key path; the query string is treated as an
    unordered list of pairs, so reordered query strings share a key and
    repeated names are all kept.
    """
    parts = urlsplit(url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    path = f"{parts.netloc}/{parts.path.strip('/')}" if parts.netloc else parts.path
    return key_for(path, params)
