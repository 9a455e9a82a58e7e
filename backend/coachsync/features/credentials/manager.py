"""
Token lifecycle management.

TokenManager returns an access token that is valid for at least the
refresh margin, refreshing through the provider's token endpoint when
needed. Refreshes for the same (provider, account) are serialized so two
concurrent callers never both spend the refresh token.

StaticTokenSource serves API-key providers (Hevy) through the same
interface; it has nothing to refresh.
"""

import asyncio
import logging
import time
import weakref
from typing import Callable, Optional, Protocol

from coachsync.shared.errors import NoCredentialError
from .oauth import OAuthClient
from .schemas import TokenSet
from .store import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MARGIN_SECONDS = 120


class TokenSource(Protocol):
    """What the fetcher needs from a credential provider."""

    provider: str

    async def get_valid_token(self, account_id: str) -> str:
        ...

    async def force_refresh(self, account_id: str, stale_token: Optional[str] = None) -> str:
        ...


class RefreshLocks:
    """
    Per-(provider, account) asyncio locks shared by all TokenManagers.

    Locks are held weakly: a lock lives while a caller holds or waits on
    it and is dropped once every caller has released it, so the registry
    does not grow with the number of accounts ever refreshed.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def for_account(self, provider: str, account_id: str) -> asyncio.Lock:
        key = (provider, account_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def __len__(self) -> int:
        return len(self._locks)


# Global lock registry
refresh_locks = RefreshLocks()


class TokenManager:
    """
    Keeps OAuth access tokens valid.

    Usage:
        manager = TokenManager(DatabaseCredentialStore(db), OAuthClient.strava())
        token = await manager.get_valid_token(account_id)
        # after a 401 from the API:
        token = await manager.force_refresh(account_id, stale_token=token)
    """

    def __init__(
        self,
        store: CredentialStore,
        oauth: OAuthClient,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
        locks: RefreshLocks = refresh_locks,
    ):
        self.store = store
        self.oauth = oauth
        self.provider = oauth.provider
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._locks = locks

    async def _load(self, account_id: str) -> TokenSet:
        tokens = await self.store.get(account_id, self.provider)
        if tokens is None:
            raise NoCredentialError(account_id, self.provider)
        return tokens

    def _needs_refresh(self, tokens: TokenSet) -> bool:
        return tokens.expires_within(self.refresh_margin, self._clock())

    async def get_valid_token(self, account_id: str) -> str:
        """
        Get a valid access token, refreshing if it expires within the margin.

        Raises:
            NoCredentialError: No credential, or one that cannot be refreshed
            RefreshFailedError: Token endpoint failure (propagated unchanged)
        """
        tokens = await self._load(account_id)
        if not self._needs_refresh(tokens):
            return tokens.access_token

        async with self._locks.for_account(self.provider, account_id):
            # Another caller may have refreshed while we waited
            tokens = await self._load(account_id)
            if not self._needs_refresh(tokens):
                return tokens.access_token
            refreshed = await self._refresh(tokens)
            return refreshed.access_token

    async def force_refresh(self, account_id: str, stale_token: Optional[str] = None) -> str:
        """
        Refresh regardless of expiry (after the API rejected a token).

        If ``stale_token`` is given and the stored token already differs
        from it, another caller refreshed in the meantime and the stored
        token is returned without a second refresh.
        """
        async with self._locks.for_account(self.provider, account_id):
            tokens = await self._load(account_id)
            if stale_token is not None and tokens.access_token != stale_token:
                return tokens.access_token
            refreshed = await self._refresh(tokens)
            return refreshed.access_token

    async def _refresh(self, tokens: TokenSet) -> TokenSet:
        if not tokens.can_refresh:
            raise NoCredentialError(tokens.account_id, self.provider, reason="no_refresh_token")

        logger.info(f"Refreshing {self.provider} token for account {tokens.account_id}")
        data = await self.oauth.refresh_token(tokens.refresh_token)

        refreshed = TokenSet(
            account_id=tokens.account_id,
            provider=self.provider,
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=data["expires_at"],
            scope=data.get("scope") or tokens.scope,
            external_athlete_id=tokens.external_athlete_id,
        )
        await self.store.save(refreshed)
        return refreshed

    async def store_authorization(self, account_id: str, token_data: dict) -> TokenSet:
        """
        Persist the result of an authorization-code exchange.

        Args:
            account_id: Local account the provider account is linked to
            token_data: Normalized response from OAuthClient.exchange_code
        """
        tokens = TokenSet(
            account_id=account_id,
            provider=self.provider,
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_at=token_data["expires_at"],
            scope=token_data.get("scope"),
            external_athlete_id=token_data.get("athlete_id"),
        )
        async with self._locks.for_account(self.provider, account_id):
            await self.store.save(tokens)
        logger.info(f"Stored {self.provider} credential for account {account_id}")
        return tokens


class StaticTokenSource:
    """API-key credential; rejected keys cannot be renewed."""

    def __init__(self, provider: str, api_key: Optional[str]):
        self.provider = provider
        self.api_key = api_key

    async def get_valid_token(self, account_id: str) -> str:
        if not self.api_key:
            raise NoCredentialError(account_id, self.provider, reason="no_api_key")
        return self.api_key

    async def force_refresh(self, account_id: str, stale_token: Optional[str] = None) -> str:
        raise NoCredentialError(account_id, self.provider, reason="api_key_rejected")
