"""
Error taxonomy shared by the credential, cache, fetch and sync layers.

Every error carries a ``retryable`` flag so the job runner can decide
whether to schedule another attempt:

- NoCredentialError: terminal, the account must re-authorize
- RefreshFailedError: retryable unless the grant was rejected
- CacheUnavailableError: never surfaced by fetches, only logged
- UpstreamError: retryable for 429 and 5xx
- DecodeError: terminal, payload contract violation
- NotFoundError: terminal, the requested item does not exist upstream
"""

from typing import Optional


class CoachSyncError(Exception):
    """Base error for the sync core."""

    retryable: bool = False


class NoCredentialError(CoachSyncError):
    """No usable credential stored for the account."""

    def __init__(self, account_id: str, provider: str, reason: str = "not_found"):
        self.account_id = account_id
        self.provider = provider
        self.reason = reason
        super().__init__(
            f"No {provider} credential for account {account_id} ({reason})"
        )


class RefreshFailedError(CoachSyncError):
    """Token endpoint refused or failed to renew the access token."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
        invalid_grant: bool = False
    ):
        self.status = status
        self.body = body
        self.invalid_grant = invalid_grant
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        if self.invalid_grant:
            return False
        # No status means a transport failure
        if self.status is None:
            return True
        return self.status == 429 or self.status >= 500


class TokenExchangeError(CoachSyncError):
    """Authorization code could not be exchanged for tokens."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class CacheUnavailableError(CoachSyncError):
    """Cache backend could not be read or written."""


class UpstreamError(CoachSyncError):
    """Remote API answered with an error status."""

    def __init__(self, status: int, body: str = "", url: str = ""):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"GET {url} -> {status}: {body[:500]}")

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500


class DecodeError(CoachSyncError):
    """Response body did not match the expected payload shape."""


class NotFoundError(CoachSyncError):
    """A typed read found nothing matching the request."""
