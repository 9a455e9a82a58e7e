"""
OAuth Routes

Out-of-band authorization that creates the stored credential:
- /oauth/{provider}/start - Redirect to the provider's consent page
- /oauth/{provider}/callback - Exchange the code, store tokens, queue first sync
"""

import secrets
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from coachsync.api.deps import get_oauth_client, resolve_provider
from coachsync.config import settings
from coachsync.db.session import get_async_db
from coachsync.features.credentials import DatabaseCredentialStore, OAuthClient, TokenManager
from coachsync.features.sync import trigger_account_sync
from coachsync.shared.clock import utcnow
from coachsync.shared.errors import TokenExchangeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["OAuth"])

# In-memory state storage (CSRF protection), single-process only
_oauth_states: dict[str, dict] = {}

STATE_TTL = timedelta(minutes=10)


# =============================================================================
# Schemas
# =============================================================================

class ConnectedResponse(BaseModel):
    status: str
    account_id: str
    provider: str
    athlete_id: Optional[str] = None
    sync_queued: bool


# =============================================================================
# Helpers
# =============================================================================

def _get_callback_url(provider: str) -> str:
    return f"{settings.base_url.rstrip('/')}/api/v1/oauth/{provider}/callback"


def _purge_expired_states(now: datetime) -> None:
    expired = [s for s, data in _oauth_states.items() if now - data["created_at"] > STATE_TTL]
    for state in expired:
        _oauth_states.pop(state, None)


def _require_oauth_provider(provider: str) -> str:
    adapter = resolve_provider(provider)
    if adapter.name != "strava":
        raise HTTPException(
            status_code=400,
            detail=f"{adapter.name} uses an API key, not OAuth"
        )
    return adapter.name


# =============================================================================
# OAuth Flow
# =============================================================================

@router.get("/{provider}/start")
async def oauth_start(
    provider: str,
    account_id: str = Query(..., min_length=1, max_length=64),
    oauth: OAuthClient = Depends(get_oauth_client),
):
    """Initiate the OAuth flow for a local account."""
    provider = _require_oauth_provider(provider)

    if not oauth.client_id:
        raise HTTPException(status_code=503, detail=f"{provider} integration not configured")

    now = utcnow()
    _purge_expired_states(now)

    state = secrets.token_urlsafe(32)
    _oauth_states[state] = {
        "account_id": account_id,
        "provider": provider,
        "created_at": now,
    }

    auth_url = oauth.get_authorization_url(_get_callback_url(provider), state=state)
    logger.info(f"{provider} OAuth initiated for account {account_id}")

    return RedirectResponse(url=auth_url)


@router.get("/{provider}/callback", response_model=ConnectedResponse)
async def oauth_callback(
    provider: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    oauth: OAuthClient = Depends(get_oauth_client),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Handle the OAuth callback.

    Exchanges the code for tokens, stores the credential and queues
    the account's first sync.
    """
    provider = _require_oauth_provider(provider)

    if error:
        logger.warning(f"{provider} OAuth error: {error}")
        raise HTTPException(status_code=400, detail=f"Authorization denied: {error}")

    state_data = _oauth_states.pop(state, None) if state else None
    if not state_data or state_data["provider"] != provider:
        logger.warning("Invalid OAuth state")
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    if utcnow() - state_data["created_at"] > STATE_TTL:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    account_id = state_data["account_id"]

    try:
        token_data = await oauth.exchange_code(code)
    except TokenExchangeError as e:
        logger.error(f"Token exchange failed for account {account_id}: {e}")
        raise HTTPException(status_code=502, detail="Token exchange failed")

    manager = TokenManager(DatabaseCredentialStore(db), oauth)
    tokens = await manager.store_authorization(account_id, token_data)

    queued = await trigger_account_sync(account_id, provider)

    return ConnectedResponse(
        status="connected",
        account_id=account_id,
        provider=provider,
        athlete_id=tokens.external_athlete_id,
        sync_queued=queued,
    )
