"""
Shared fixtures.

- session_factory / db_session: in-memory SQLite (aiosqlite) with all tables
- clock: mutable naive-UTC clock
- strava_activity(): Strava feed item factory
"""

from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from coachsync.models import Base, register_models
from coachsync.shared.clock import to_unix


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Mutable clock returning naive UTC datetimes."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def timestamp(self) -> float:
        """Unix-time view for components that take a float clock."""
        return float(to_unix(self.now))


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    register_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# HTTP doubles
# =============================================================================

def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def strava_activity(activity_id: int, start: datetime, **overrides) -> dict:
    """Strava summary activity as returned by /athlete/activities."""
    item = {
        "id": activity_id,
        "name": f"Run {activity_id}",
        "type": "Run",
        "sport_type": "Run",
        "start_date": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "elapsed_time": 3600,
        "moving_time": 3500,
        "distance": 10000.0,
        "total_elevation_gain": 120.0,
        "average_heartrate": 148.6,
        "map": {"summary_polyline": "abc"},
    }
    item.update(overrides)
    return item
