"""
Generic async repository.

Feature repositories subclass it with their model and add the lookups
they need on top of the key-based helpers here.

Usage:
    class WatermarkRepository(BaseRepository[SyncWatermark]):
        def __init__(self, db: AsyncSession):
            super().__init__(db, SyncWatermark)

        async def get_for(self, account_id: str, source: str) -> SyncWatermark | None:
            return await self.get_by(account_id=account_id, source=source)
"""

from typing import Any, Generic, Type, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Key-based reads and flush-only writes for one model.

    Writes flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession, model: Type[T]):
        self.db = db
        self.model = model

    def _filtered(self, filters: dict[str, Any]) -> Select:
        query = select(self.model)
        for column, value in filters.items():
            query = query.where(getattr(self.model, column) == value)
        return query

    async def get_by(self, **filters) -> T | None:
        """Single row matching all ``filters`` (column=value), or None."""
        result = await self.db.execute(self._filtered(filters))
        return result.scalar_one_or_none()

    async def create(self, **values) -> T:
        """Insert a row and return it with server-side defaults loaded."""
        entity = self.model(**values)
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def update(self, entity: T, **values) -> T:
        """Set attributes on ``entity`` and flush."""
        for column, value in values.items():
            setattr(entity, column, value)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity
