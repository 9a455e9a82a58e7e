"""
Sync persistence.

- WatermarkRepository: data access for SyncWatermark
- SyncSink: what the sync engine writes to
- DatabaseSyncSink: SyncSink over the activity and watermark tables
"""

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from coachsync.features.activities.repository import ActivityRepository
from coachsync.features.activities.schemas import ActivityData
from coachsync.shared.repository import BaseRepository
from .models import SyncWatermark


class WatermarkRepository(BaseRepository[SyncWatermark]):
    """Repository for sync watermarks."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, SyncWatermark)

    async def get_for(self, account_id: str, source: str) -> SyncWatermark | None:
        return await self.get_by(account_id=account_id, source=source)

    async def get_or_create(self, account_id: str, source: str) -> SyncWatermark:
        watermark = await self.get_for(account_id, source)
        if not watermark:
            watermark = await self.create(account_id=account_id, source=source, total_synced=0)
        return watermark

    async def get_due(self, source: str, older_than: datetime) -> list[SyncWatermark]:
        """Watermarks never completed or completed before ``older_than``."""
        result = await self.db.execute(
            select(SyncWatermark).where(
                SyncWatermark.source == source,
                or_(
                    SyncWatermark.last_synced_at.is_(None),
                    SyncWatermark.last_synced_at < older_than,
                ),
            )
        )
        return list(result.scalars().all())


class SyncSink(Protocol):
    """Persistence consumed by SyncEngine."""

    async def get_watermark(self, account_id: str, source: str) -> Optional[datetime]:
        ...

    async def upsert_activity(self, account_id: str, source: str, data: ActivityData) -> bool:
        """Insert or update; True when a new record was created."""
        ...

    async def set_watermark(
        self, account_id: str, source: str, synced_at: datetime, upserted: int
    ) -> None:
        ...

    async def record_failure(
        self, account_id: str, source: str, error: str, attempted_at: datetime
    ) -> None:
        ...


class DatabaseSyncSink:
    """
    SyncSink backed by SQLAlchemy.

    Each upsert commits on its own, so an aborted sync keeps the
    records it already wrote.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activities = ActivityRepository(db)
        self.watermarks = WatermarkRepository(db)

    async def get_watermark(self, account_id: str, source: str) -> Optional[datetime]:
        watermark = await self.watermarks.get_for(account_id, source)
        return watermark.last_synced_at if watermark else None

    async def upsert_activity(self, account_id: str, source: str, data: ActivityData) -> bool:
        _, created = await self.activities.upsert(account_id, source, data)
        await self.db.commit()
        return created

    async def set_watermark(
        self, account_id: str, source: str, synced_at: datetime, upserted: int
    ) -> None:
        watermark = await self.watermarks.get_or_create(account_id, source)
        await self.watermarks.update(
            watermark,
            last_synced_at=synced_at,
            last_attempt_at=synced_at,
            last_error=None,
            total_synced=(watermark.total_synced or 0) + upserted,
        )
        await self.db.commit()

    async def record_failure(
        self, account_id: str, source: str, error: str, attempted_at: datetime
    ) -> None:
        # Drop whatever the failed step left pending
        await self.db.rollback()
        watermark = await self.watermarks.get_or_create(account_id, source)
        await self.watermarks.update(
            watermark,
            last_attempt_at=attempted_at,
            last_error=error[:500],
        )
        await self.db.commit()

