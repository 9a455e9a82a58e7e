"""
Account sync endpoints.

Endpoints:
- POST /accounts/{account_id}/sync        - Queue a sync (202)
- GET  /accounts/{account_id}/sync        - Watermark and queue status
- GET  /accounts/{account_id}/activities  - Stored activities
- GET  /sync/stats                        - Job runner statistics
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from coachsync.api.deps import resolve_provider
from coachsync.db.session import get_async_db
from coachsync.features.activities import ActivityRepository, ActivityResponse
from coachsync.features.sync import (
    WatermarkRepository,
    get_sync_stats,
    sync_queue,
    trigger_account_sync,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sync"])


# =============================================================================
# Schemas
# =============================================================================

class SyncQueuedResponse(BaseModel):
    account_id: str
    provider: str
    queued: bool
    since: Optional[datetime] = None


class SyncStatusResponse(BaseModel):
    account_id: str
    provider: str
    last_synced_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    total_synced: int = 0
    pending: bool = False


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/accounts/{account_id}/sync",
    response_model=SyncQueuedResponse,
    status_code=202,
)
async def queue_sync(
    account_id: str,
    provider: str = Query("strava"),
    since: Optional[datetime] = Query(
        None, description="Re-walk from this time instead of the watermark"
    ),
):
    """Queue a sync; a sync already queued or running for the account is kept."""
    adapter = resolve_provider(provider)
    queued = await trigger_account_sync(account_id, adapter.name, since)

    return SyncQueuedResponse(
        account_id=account_id,
        provider=adapter.name,
        queued=queued,
        since=since,
    )


@router.get("/accounts/{account_id}/sync", response_model=SyncStatusResponse)
async def get_sync_status(
    account_id: str,
    provider: str = Query("strava"),
    db: AsyncSession = Depends(get_async_db),
):
    """Sync status of an account for one provider."""
    adapter = resolve_provider(provider)
    watermark = await WatermarkRepository(db).get_for(account_id, adapter.name)
    pending = sync_queue.is_pending(account_id, adapter.name)

    if not watermark:
        return SyncStatusResponse(account_id=account_id, provider=adapter.name, pending=pending)

    return SyncStatusResponse(
        account_id=account_id,
        provider=adapter.name,
        last_synced_at=watermark.last_synced_at,
        last_attempt_at=watermark.last_attempt_at,
        last_error=watermark.last_error,
        total_synced=watermark.total_synced or 0,
        pending=pending,
    )


@router.get("/accounts/{account_id}/activities", response_model=list[ActivityResponse])
async def list_activities(
    account_id: str,
    provider: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    """Stored activities, newest first."""
    source = resolve_provider(provider).name if provider else None
    records = await ActivityRepository(db).get_account_activities(
        account_id, source=source, limit=limit, offset=offset
    )
    return [ActivityResponse.model_validate(r) for r in records]


@router.get("/sync/stats")
async def sync_stats():
    """Job runner statistics."""
    return get_sync_stats()
