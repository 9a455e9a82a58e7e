"""
Conditional fetcher.

Serves GET requests from the response cache when fresh, revalidates
stale entries with ``If-None-Match`` and falls back to a full fetch.
Authorization comes from a TokenSource; a 401 triggers exactly one
forced refresh and one retry.

Request flow:
1. fresh cache read (skipped when caching is disabled)
2. conditional request with the stale entry's ETag, 304 -> cached body;
   a transport error or other status falls through to step 3
3. unconditional request, 200 -> decode, cache body + ETag, return

Cache failures are logged and the request proceeds without the cache.
Error responses are never cached.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, AsyncIterator, Optional, Union

import httpx

from coachsync.config import settings
from coachsync.features.cache import CacheEntry, CacheStore
from coachsync.features.cache.keys import Params
from coachsync.features.credentials.manager import TokenSource
from coachsync.features.providers.base import ProviderAdapter
from coachsync.shared.errors import CacheUnavailableError, DecodeError, UpstreamError

logger = logging.getLogger(__name__)

Ttl = Union[float, timedelta]


@dataclass
class FetcherConfig:
    """
    Construction-time fetcher options.

    Attributes:
        no_cache: Skip cache reads; successful responses are still stored
        timeout: Bound for every network call, seconds
        default_ttl: Freshness budget when fetch() gets no ttl, seconds
    """

    no_cache: bool = False
    timeout: float = 20.0
    default_ttl: float = 24 * 3600

    @classmethod
    def from_settings(cls, no_cache: Optional[bool] = None) -> "FetcherConfig":
        return cls(
            no_cache=settings.cache_disabled if no_cache is None else no_cache,
            timeout=settings.http_timeout_seconds,
            default_ttl=settings.cache_ttl_seconds,
        )


class ConditionalFetcher:
    """
    Cached, authenticated GET client for one provider.

    Usage:
        fetcher = ConditionalFetcher(get_adapter("strava"), token_manager, cache)
        activities = await fetcher.fetch(
            "/athlete/activities", {"per_page": 10}, ttl=3600, account_id="42"
        )
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        tokens: TokenSource,
        cache: Optional[CacheStore] = None,
        config: Optional[FetcherConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.adapter = adapter
        self.tokens = tokens
        self.cache = cache
        self.config = config or FetcherConfig()
        self._http_client = http_client

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                yield client

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.adapter.api_base}{path}"

    def cache_key(self, account_id: str, path: str, params: Optional[Params]) -> str:
        """Cache key for a request, scoped to the account."""
        return self.cache.key_for(f"/{account_id}{path}", params)

    # -------------------------------------------------------------------------
    # Cache access (failures degrade to no cache)
    # -------------------------------------------------------------------------

    async def _cache_read(self, key: str, max_age: Ttl) -> Optional[CacheEntry]:
        try:
            return await asyncio.to_thread(self.cache.read, key, max_age)
        except CacheUnavailableError as e:
            logger.warning(f"Cache read failed, fetching without cache: {e}")
            return None

    async def _cache_write(self, key: str, body: bytes, etag: Optional[str]) -> None:
        entry = CacheEntry(key=key, body=body, etag=etag)
        try:
            await asyncio.to_thread(self.cache.write, key, entry)
        except CacheUnavailableError as e:
            logger.warning(f"Cache write failed, response not cached: {e}")

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    async def _request(
        self,
        url: str,
        params: Optional[Params],
        token: str,
        etag: Optional[str]
    ) -> httpx.Response:
        headers = self.adapter.auth_headers(token)
        if etag:
            headers["If-None-Match"] = etag

        async with self._http() as client:
            response = await client.get(
                url,
                params=params or None,
                headers=headers,
                timeout=self.config.timeout,
            )

        if "X-RateLimit-Usage" in response.headers:
            logger.debug(
                f"{self.adapter.name} rate limit: {response.headers.get('X-RateLimit-Usage')} "
                f"/ {response.headers.get('X-RateLimit-Limit')}"
            )
        return response

    async def _send(
        self,
        account_id: str,
        url: str,
        params: Optional[Params],
        etag: Optional[str] = None
    ) -> httpx.Response:
        """Authenticated GET; on 401 force one refresh and retry once."""
        token = await self.tokens.get_valid_token(account_id)
        response = await self._request(url, params, token, etag)

        if response.status_code == 401:
            logger.info(
                f"{self.adapter.name} rejected token for account {account_id}, "
                f"refreshing and retrying once"
            )
            token = await self.tokens.force_refresh(account_id, stale_token=token)
            response = await self._request(url, params, token, etag)

        return response

    # -------------------------------------------------------------------------
    # Decoding
    # -------------------------------------------------------------------------

    @staticmethod
    def _decode(body: bytes, url: str) -> Any:
        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {url}: {e}") from e

    async def _accept(self, response: httpx.Response, url: str, key: Optional[str]) -> Any:
        body = response.content
        data = self._decode(body, url)
        if key is not None:
            await self._cache_write(key, body, response.headers.get("ETag"))
        return data

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def fetch(
        self,
        path: str,
        params: Optional[Params] = None,
        ttl: Optional[Ttl] = None,
        *,
        account_id: str,
        use_cache: bool = True,
    ) -> Any:
        """
        GET ``path`` and return the decoded JSON body.

        Args:
            path: API path relative to the adapter's base, or a full URL
            params: Query parameters
            ttl: Freshness budget; defaults to FetcherConfig.default_ttl
            account_id: Account whose credential authorizes the call
            use_cache: False bypasses the cache entirely (no read, no write)

        Raises:
            UpstreamError: Response status >= 300 (after the 401 retry)
            DecodeError: Body is not valid JSON
            NoCredentialError / RefreshFailedError: From the token source
            httpx.HTTPError: Transport failures and timeouts
        """
        url = self.url_for(path)
        if ttl is None:
            ttl = self.config.default_ttl

        key = None
        if self.cache is not None and use_cache:
            key = self.cache_key(account_id, path, params)

        if key is not None and not self.config.no_cache:
            fresh = await self._cache_read(key, ttl)
            if fresh is not None:
                logger.debug(f"Cache hit {key}")
                return self._decode(fresh.body, url)

            stale = await self._cache_read(key, 0)
            if stale is not None and stale.etag:
                try:
                    response = await self._send(account_id, url, params, etag=stale.etag)
                except httpx.TransportError as e:
                    logger.debug(f"Conditional request for {key} failed, refetching: {e!r}")
                    response = None

                if response is not None:
                    if response.status_code == 304:
                        logger.debug(f"Revalidated {key} ({stale.etag})")
                        # Rewrite so the entry's age restarts from now
                        await self._cache_write(
                            key, stale.body, response.headers.get("ETag") or stale.etag
                        )
                        return self._decode(stale.body, url)
                    if response.status_code == 200:
                        return await self._accept(response, url, key)
                    if response.status_code == 401:
                        raise UpstreamError(401, response.text, url)
                    logger.debug(
                        f"Conditional request for {key} -> {response.status_code}, refetching"
                    )

        response = await self._send(account_id, url, params)
        if response.status_code >= 300:
            raise UpstreamError(response.status_code, response.text, url)

        return await self._accept(response, url, key)
