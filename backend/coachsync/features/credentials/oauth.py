"""
OAuth token endpoint client.

Handles:
- Authorization URL generation
- Code exchange for tokens
- Token refresh

Token responses are normalized to
``{"access_token", "refresh_token", "expires_at", "scope", "athlete_id"}``
whether the provider returns ``expires_at`` or ``expires_in``.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional
from urllib.parse import urlencode

import httpx

from coachsync.config import settings
from coachsync.shared.errors import RefreshFailedError, TokenExchangeError

logger = logging.getLogger(__name__)


def _is_invalid_grant(response: httpx.Response) -> bool:
    """
    Detect an explicit grant rejection.

    RFC 6749 servers answer ``{"error": "invalid_grant"}``; Strava answers
    ``{"errors": [{"field": "refresh_token", "code": "invalid"}]}``.
    """
    try:
        payload = response.json()
    except ValueError:
        return False
    if not isinstance(payload, dict):
        return False
    if payload.get("error") == "invalid_grant":
        return True
    for error in payload.get("errors") or []:
        if (
            isinstance(error, dict)
            and error.get("code") == "invalid"
            and error.get("field") in ("refresh_token", "code")
        ):
            return True
    return False


class OAuthClient:
    """
    OAuth2 authorization-code client for one provider.

    Usage:
        oauth = OAuthClient.strava()
        auth_url = oauth.get_authorization_url(
            redirect_uri="https://example.com/callback",
            state="athlete_123"
        )
        tokens = await oauth.exchange_code(code)
        tokens = await oauth.refresh_token(refresh_token)
    """

    def __init__(
        self,
        provider: str,
        client_id: Optional[str],
        client_secret: Optional[str],
        token_url: str,
        authorize_url: str,
        default_scope: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.authorize_url = authorize_url
        self.default_scope = default_scope
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock

    @classmethod
    def strava(cls, http_client: Optional[httpx.AsyncClient] = None) -> "OAuthClient":
        """Client configured from STRAVA_* settings."""
        return cls(
            provider="strava",
            client_id=settings.strava_client_id,
            client_secret=settings.strava_client_secret,
            token_url="https://www.strava.com/oauth/token",
            authorize_url="https://www.strava.com/oauth/authorize",
            default_scope="read,activity:read_all",
            http_client=http_client,
            timeout=settings.http_timeout_seconds,
        )

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def get_authorization_url(
        self,
        redirect_uri: str,
        state: Optional[str] = None,
        scope: Optional[str] = None
    ) -> str:
        """
        Generate the provider's authorization URL.

        Args:
            redirect_uri: URL to redirect after authorization
            state: Optional state parameter (carries the account id)
            scope: OAuth scope, defaults to the provider default

        Returns:
            Authorization URL string
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": scope or self.default_scope,
            "approval_prompt": "auto"
        }
        if state:
            params["state"] = state

        return f"{self.authorize_url}?{urlencode(params)}"

    def _normalize(self, payload: dict, previous_refresh_token: Optional[str] = None) -> dict:
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise ValueError("token response has no access_token")

        if payload.get("expires_at") is not None:
            expires_at = int(payload["expires_at"])
        elif payload.get("expires_in") is not None:
            expires_at = int(self._clock()) + int(payload["expires_in"])
        else:
            raise ValueError("token response has neither expires_at nor expires_in")

        athlete = payload.get("athlete") or {}
        return {
            "access_token": payload["access_token"],
            "refresh_token": payload.get("refresh_token") or previous_refresh_token,
            "expires_at": expires_at,
            "scope": payload.get("scope"),
            "athlete_id": str(athlete["id"]) if athlete.get("id") is not None else None,
        }

    async def exchange_code(self, code: str) -> dict:
        """
        Exchange authorization code for tokens.

        Raises:
            TokenExchangeError: If token exchange fails
        """
        try:
            async with self._http() as client:
                response = await client.post(
                    self.token_url,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "grant_type": "authorization_code"
                    }
                )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token exchange failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"{self.provider} token exchange failed: {response.text}")
            raise TokenExchangeError(
                f"Token exchange failed: {response.status_code}",
                status=response.status_code,
                body=response.text,
            )

        try:
            return self._normalize(response.json())
        except ValueError as e:
            raise TokenExchangeError(f"Token exchange returned bad payload: {e}") from e

    async def refresh_token(self, refresh_token: str) -> dict:
        """
        Exchange a refresh token for a new token set.

        Raises:
            RefreshFailedError: If token refresh fails. ``invalid_grant``
                is set when the provider explicitly rejected the grant.
        """
        try:
            async with self._http() as client:
                response = await client.post(
                    self.token_url,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token"
                    }
                )
        except httpx.HTTPError as e:
            raise RefreshFailedError(f"Token refresh failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"{self.provider} token refresh failed: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise RefreshFailedError(
                f"Token refresh failed: {response.status_code}",
                status=response.status_code,
                body=response.text,
                invalid_grant=_is_invalid_grant(response),
            )

        try:
            return self._normalize(response.json(), previous_refresh_token=refresh_token)
        except ValueError as e:
            raise RefreshFailedError(
                f"Token refresh returned bad payload: {e}",
                status=response.status_code,
                body=response.text,
            ) from e
