"""
Wiring of token sources, caches, fetchers and sync engines from settings.

Usage:
    engine = build_sync_engine(db, "strava")
    result = await engine.sync_account(account_id)
"""

from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from coachsync.config import settings
from coachsync.features.cache import CacheStore, FileCacheStore
from coachsync.features.credentials import (
    CredentialStore,
    DatabaseCredentialStore,
    OAuthClient,
    StaticTokenSource,
    TokenManager,
    TokenSource,
)
from coachsync.features.fetcher import ConditionalFetcher, FetcherConfig
from coachsync.features.providers import get_adapter
from .config import SyncConfig
from .repository import DatabaseSyncSink
from .service import SyncEngine


def build_token_manager(
    store: CredentialStore,
    provider: str = "strava",
    http_client: Optional[httpx.AsyncClient] = None
) -> TokenManager:
    """TokenManager for an OAuth provider."""
    if provider != "strava":
        raise ValueError(f"Provider '{provider}' does not use OAuth")
    return TokenManager(
        store,
        OAuthClient.strava(http_client=http_client),
        refresh_margin=settings.token_refresh_margin_seconds,
    )


def build_token_source(
    store: CredentialStore,
    provider: str,
    http_client: Optional[httpx.AsyncClient] = None
) -> TokenSource:
    """Credential provider for ``provider``: OAuth tokens or a static API key."""
    if provider == "hevy":
        return StaticTokenSource("hevy", settings.hevy_api_key)
    return build_token_manager(store, provider, http_client)


def build_cache(provider: str) -> CacheStore:
    return FileCacheStore.for_provider(settings.cache_dir, provider)


def build_fetcher(
    tokens: TokenSource,
    provider: str,
    no_cache: Optional[bool] = None,
    http_client: Optional[httpx.AsyncClient] = None
) -> ConditionalFetcher:
    return ConditionalFetcher(
        get_adapter(provider),
        tokens,
        cache=build_cache(provider),
        config=FetcherConfig.from_settings(no_cache=no_cache),
        http_client=http_client,
    )


def build_sync_engine(
    db: AsyncSession,
    provider: str,
    http_client: Optional[httpx.AsyncClient] = None
) -> SyncEngine:
    """SyncEngine persisting to ``db`` with credentials from ``db``."""
    tokens = build_token_source(DatabaseCredentialStore(db), provider, http_client)
    fetcher = build_fetcher(tokens, provider, http_client=http_client)
    return SyncEngine(fetcher, DatabaseSyncSink(db), SyncConfig.from_settings())
