"""
Activity repository.

Data access layer for ActivityRecord.
"""

from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from coachsync.shared.clock import utcnow
from coachsync.shared.repository import BaseRepository
from .models import ActivityRecord
from .schemas import ActivityData


class ActivityRepository(BaseRepository[ActivityRecord]):
    """Repository for synchronized activities."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ActivityRecord)

    async def get_by_source_id(
        self,
        account_id: str,
        source: str,
        source_id: str
    ) -> ActivityRecord | None:
        """Get activity by its natural key."""
        return await self.get_by(account_id=account_id, source=source, source_id=source_id)

    async def upsert(
        self,
        account_id: str,
        source: str,
        data: ActivityData
    ) -> tuple[ActivityRecord, bool]:
        """
        Insert or update an activity keyed by (account_id, source, source_id).

        Args:
            account_id: Local account id
            source: Provider name
            data: Decoded activity

        Returns:
            (record, created) where created is False for an update
        """
        fields = {
            "name": data.name,
            "sport": data.sport,
            "started_at": data.started_at,
            "duration_sec": data.duration_sec,
            "distance_m": data.distance_m,
            "elevation_gain_m": data.elevation_gain_m,
            "avg_heart_rate": data.avg_heart_rate,
            "raw_payload": data.raw_payload,
        }

        existing = await self.get_by_source_id(account_id, source, data.source_id)
        if existing:
            record = await self.update(existing, updated_at=utcnow(), **fields)
            return record, False

        record = await self.create(
            account_id=account_id,
            source=source,
            source_id=data.source_id,
            **fields
        )
        return record, True

    async def get_account_activities(
        self,
        account_id: str,
        source: str | None = None,
        limit: int = 50,
        offset: int = 0
    ) -> list[ActivityRecord]:
        """
        Get account activities with pagination.

        Returns:
            List of activities ordered by start time (newest first)
        """
        query = (
            select(ActivityRecord)
            .where(ActivityRecord.account_id == account_id)
            .order_by(desc(ActivityRecord.started_at))
            .offset(offset)
            .limit(limit)
        )
        if source:
            query = query.where(ActivityRecord.source == source)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_account_activities(
        self,
        account_id: str,
        source: str | None = None
    ) -> int:
        """Count account activities."""
        query = (
            select(func.count())
            .select_from(ActivityRecord)
            .where(ActivityRecord.account_id == account_id)
        )
        if source:
            query = query.where(ActivityRecord.source == source)

        result = await self.db.execute(query)
        return result.scalar() or 0
