"""
CoachSync API

FastAPI application exposing OAuth linking, sync triggers and stored
activities. Runs the background sync worker in-process.
"""

from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI

from coachsync import __version__
from coachsync.config import settings
from coachsync.db.session import init_db, AsyncSessionLocal
from coachsync.api.v1.router import api_router
from coachsync.features.sync import background_sync


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables, then run the background sync worker for the app's lifetime."""
    # Startup
    logger.info("Starting CoachSync API...")
    await init_db()
    logger.info("Database initialized")

    if settings.background_sync_enabled:
        await background_sync.start(AsyncSessionLocal)

    yield

    # Shutdown
    if settings.background_sync_enabled:
        await background_sync.stop()
    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="CoachSync API",
    description="Token lifecycle, conditional caching and incremental sync for fitness APIs",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Routes ===
app.include_router(api_router, prefix="/api/v1")


# === Health Check ===
@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy", "version": __version__}
