"""
Activity sync.

Provides:
- SyncEngine: incremental, paginated, idempotent feed walk
- DatabaseSyncSink: activity upserts and watermarks in the database
- is_retryable: retry classification for failed syncs
- BackgroundSyncRunner: queued sync jobs with single-flight per account
"""

from .models import SyncWatermark
from .config import SyncConfig
from .repository import SyncSink, DatabaseSyncSink, WatermarkRepository
from .retry import is_retryable, retry_delay
from .service import SyncEngine, SyncResult
from .background import (
    BackgroundSyncRunner,
    SyncJob,
    SyncQueueManager,
    background_sync,
    sync_queue,
    trigger_account_sync,
    get_sync_stats,
)

__all__ = [
    # Engine
    "SyncEngine",
    "SyncResult",
    "SyncConfig",
    # Persistence
    "SyncWatermark",
    "SyncSink",
    "DatabaseSyncSink",
    "WatermarkRepository",
    # Retry
    "is_retryable",
    "retry_delay",
    # Background
    "BackgroundSyncRunner",
    "SyncJob",
    "SyncQueueManager",
    "background_sync",
    "sync_queue",
    "trigger_account_sync",
    "get_sync_stats",
]
