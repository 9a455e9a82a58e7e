"""
Async engine and sessions.

DATABASE_URL is written with a sync scheme (shared with Alembic) and
mapped to its async driver here: aiosqlite for SQLite, asyncpg for
PostgreSQL.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coachsync.config import settings

_ASYNC_DRIVERS = {
    "sqlite://": "sqlite+aiosqlite://",
    "postgresql://": "postgresql+asyncpg://",
}


def to_async_url(url: str) -> str:
    """Swap a sync URL scheme for its async driver; other URLs pass through."""
    for scheme, async_scheme in _ASYNC_DRIVERS.items():
        if url.startswith(scheme):
            return async_scheme + url[len(scheme):]
    return url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Background runner and request handlers share connections across tasks
        return {"connect_args": {"check_same_thread": False}}
    if url.startswith("postgresql"):
        return {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
        }
    return {}


_async_url = to_async_url(settings.database_url)

async_engine = create_async_engine(_async_url, **_engine_options(_async_url))

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session closed after the request."""
    async with AsyncSessionLocal() as session:
        yield session


# =============================================================================
# Initialization
# =============================================================================

async def init_db() -> None:
    """Create tables that do not exist yet (Alembic owns real migrations)."""
    from coachsync.models import Base, register_models

    register_models()
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
