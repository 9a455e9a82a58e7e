"""
Tests for ActivityRepository.
"""

from datetime import datetime

from sqlalchemy import select, func

from coachsync.features.activities import ActivityData, ActivityRecord, ActivityRepository


def _data(source_id="100", name="Morning Run", distance=10000.0, started_at=datetime(2024, 5, 2, 6, 0)):
    return ActivityData(
        source_id=source_id,
        name=name,
        sport="Run",
        started_at=started_at,
        duration_sec=3600,
        distance_m=distance,
        raw_payload={"id": source_id},
    )


async def _count(db) -> int:
    return await db.scalar(select(func.count()).select_from(ActivityRecord))


class TestUpsert:
    """Idempotent insert-or-update."""

    async def test_insert(self, db_session):
        repo = ActivityRepository(db_session)

        record, created = await repo.upsert("A", "strava", _data())

        assert created
        assert record.id is not None
        assert record.source_id == "100"
        assert record.distance_km == 10.0

    async def test_same_key_updates_in_place(self, db_session):
        repo = ActivityRepository(db_session)
        first, _ = await repo.upsert("A", "strava", _data())

        second, created = await repo.upsert(
            "A", "strava", _data(name="Renamed", distance=10500.0)
        )
        await db_session.commit()

        assert not created
        assert second.id == first.id
        assert await _count(db_session) == 1

        stored = await repo.get_by_source_id("A", "strava", "100")
        assert stored.name == "Renamed"
        assert stored.distance_m == 10500.0

    async def test_key_includes_account_and_source(self, db_session):
        repo = ActivityRepository(db_session)
        await repo.upsert("A", "strava", _data())
        await repo.upsert("B", "strava", _data())
        await repo.upsert("A", "hevy", _data())

        assert await _count(db_session) == 3


class TestQueries:
    """Listing and counting."""

    async def test_newest_first_with_source_filter(self, db_session):
        repo = ActivityRepository(db_session)
        await repo.upsert("A", "strava", _data("1", started_at=datetime(2024, 5, 1)))
        await repo.upsert("A", "strava", _data("2", started_at=datetime(2024, 5, 3)))
        await repo.upsert("A", "hevy", _data("3", started_at=datetime(2024, 5, 2)))
        await db_session.commit()

        all_records = await repo.get_account_activities("A")
        strava_only = await repo.get_account_activities("A", source="strava")

        assert [r.source_id for r in all_records] == ["2", "3", "1"]
        assert [r.source_id for r in strava_only] == ["2", "1"]
        assert await repo.count_account_activities("A") == 3
        assert await repo.count_account_activities("A", source="hevy") == 1
