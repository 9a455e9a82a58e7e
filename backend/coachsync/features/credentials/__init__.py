"""
Credential lifecycle module.

Usage:
    from coachsync.features.credentials import (
        DatabaseCredentialStore, OAuthClient, TokenManager
    )

Components:
- CredentialStore: token storage (database or JSON files)
- OAuthClient: token endpoint (auth URL, code exchange, refresh)
- TokenManager: valid-token guarantee with per-account refresh locking
- StaticTokenSource: API-key providers
"""

from .models import Credential
from .schemas import TokenSet
from .store import (
    CredentialStore,
    CredentialRepository,
    DatabaseCredentialStore,
    FileCredentialStore,
)
from .oauth import OAuthClient
from .manager import (
    TokenManager,
    TokenSource,
    StaticTokenSource,
    RefreshLocks,
    refresh_locks,
)

__all__ = [
    # Models
    "Credential",
    "TokenSet",
    # Stores
    "CredentialStore",
    "CredentialRepository",
    "DatabaseCredentialStore",
    "FileCredentialStore",
    # OAuth
    "OAuthClient",
    # Lifecycle
    "TokenManager",
    "TokenSource",
    "StaticTokenSource",
    "RefreshLocks",
    "refresh_locks",
]
