"""
Retry classification for sync jobs.

Retryable: network timeouts, connection and DNS failures, HTTP 429/5xx,
token refresh failures other than an explicit grant rejection.
Terminal: everything else (missing credential, malformed payload,
permanent auth rejection, local errors).
"""

import httpx

from coachsync.shared.errors import CoachSyncError


def is_retryable(exc: BaseException) -> bool:
    """Whether a failed sync should be attempted again automatically."""
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, CoachSyncError):
        return exc.retryable
    return False


def retry_delay(attempt: int, base_delay: float, max_delay: float = 3600.0) -> float:
    """
    Exponential backoff delay before retry number ``attempt`` (1-based).

    Example: base 30s -> 30, 60, 120, ...
    """
    return min(base_delay * (2 ** max(attempt - 1, 0)), max_delay)
