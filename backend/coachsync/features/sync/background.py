"""
Background sync runner.

Handles queued and scheduled synchronization of account activity feeds.
At most one job per (provider, account) is queued or running at a time.
Retryable failures are re-queued with exponential backoff; terminal ones
are logged and dropped.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select

from coachsync.config import settings
from coachsync.features.credentials.models import Credential
from coachsync.shared.clock import utcnow
from .repository import WatermarkRepository
from .retry import is_retryable, retry_delay
from .service import SyncEngine, SyncResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncJob:
    """One requested sync."""

    account_id: str
    provider: str = "strava"
    since: Optional[datetime] = None
    attempt: int = 0
    not_before: float = 0.0  # monotonic time before which the job waits

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider, self.account_id)


# =============================================================================
# Sync Queue Manager
# =============================================================================

class SyncQueueManager:
    """
    FIFO of sync jobs with single-flight per (provider, account).

    Adding a job whose key is already queued or in progress is a no-op.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._queue: deque[SyncJob] = deque()
        self._queued: set[tuple[str, str]] = set()
        self._in_progress: set[tuple[str, str]] = set()
        self._lock = asyncio.Lock()
        self._clock = clock

    async def add_job(self, job: SyncJob, priority: bool = False) -> bool:
        """Add job to queue. Returns False if its key is queued or running."""
        async with self._lock:
            if job.key in self._queued or job.key in self._in_progress:
                logger.debug(f"Sync for {job.key} already pending, not queued")
                return False
            if priority:
                self._queue.appendleft(job)
            else:
                self._queue.append(job)
            self._queued.add(job.key)
            logger.debug(f"Added {job.key} to sync queue (priority={priority})")
            return True

    async def get_next_jobs(self, count: int) -> list[SyncJob]:
        """Take up to ``count`` jobs that are due and mark them in progress."""
        async with self._lock:
            now = self._clock()
            jobs: list[SyncJob] = []
            waiting: list[SyncJob] = []
            while self._queue and len(jobs) < count:
                job = self._queue.popleft()
                if job.not_before > now:
                    waiting.append(job)
                    continue
                self._queued.discard(job.key)
                self._in_progress.add(job.key)
                jobs.append(job)
            self._queue.extend(waiting)
            return jobs

    async def mark_complete(self, job: SyncJob):
        """Mark job as no longer running."""
        async with self._lock:
            self._in_progress.discard(job.key)

    async def retry_later(self, job: SyncJob, delay: float) -> SyncJob:
        """Re-queue a failed job as its next attempt after ``delay`` seconds."""
        retry = replace(job, attempt=job.attempt + 1, not_before=self._clock() + delay)
        async with self._lock:
            self._in_progress.discard(job.key)
            self._queue.append(retry)
            self._queued.add(job.key)
        return retry

    def is_pending(self, account_id: str, provider: str = "strava") -> bool:
        key = (provider, account_id)
        return key in self._queued or key in self._in_progress

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def in_progress_count(self) -> int:
        return len(self._in_progress)


# Process-wide queue shared by the API and the runner
sync_queue = SyncQueueManager()


def _default_engine_factory(db, provider: str) -> SyncEngine:
    from .factory import build_sync_engine
    return build_sync_engine(db, provider)


# =============================================================================
# Background Sync Runner
# =============================================================================

class BackgroundSyncRunner:
    """
    Drains the sync queue in batches inside the API process.

    When the queue is empty it schedules linked accounts whose last
    completed sync is older than `sync_min_interval_hours`.

    Usage:
        runner = BackgroundSyncRunner(batch_size=3)
        await runner.start(AsyncSessionLocal)
        # ... later ...
        await runner.stop()
    """

    def __init__(
        self,
        queue: SyncQueueManager = sync_queue,
        engine_factory: Callable[..., SyncEngine] = _default_engine_factory,
        batch_size: int = 5,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        db_factory=None,
    ):
        self.queue = queue
        self.engine_factory = engine_factory
        self.batch_size = batch_size
        self.max_retries = settings.sync_max_retries if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.sync_retry_base_delay_seconds
            if retry_base_delay is None else retry_base_delay
        )
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._db_factory = db_factory
        self.stats = {"succeeded": 0, "retried": 0, "failed": 0}

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, db_factory):
        """Begin draining the queue; a second call is a no-op."""
        if self._running:
            return

        self._running = True
        self._db_factory = db_factory
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Background sync started (batch size {self.batch_size})")

    async def stop(self):
        """Cancel the loop and wait for the current batch to unwind."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Background sync stopped")

    async def _run_loop(self):
        while self._running:
            try:
                await self.process_batch()
            except Exception as e:
                logger.exception(f"Sync batch crashed: {e}")

            await asyncio.sleep(settings.background_sync_interval_seconds)

    async def process_batch(self) -> int:
        """Run one batch of due jobs. Returns the number of jobs taken."""
        jobs = await self.queue.get_next_jobs(self.batch_size)

        if not jobs:
            await self._refresh_queue()
            return 0

        logger.info(f"Processing sync batch: {len(jobs)} jobs")
        for job in jobs:
            await self.run_job(job)
        return len(jobs)

    async def run_job(self, job: SyncJob) -> Optional[SyncResult]:
        """
        Run one job; classify and schedule failures.

        Returns:
            SyncResult on success, None when the job failed
        """
        try:
            async with self._db_factory() as db:
                engine = self.engine_factory(db, job.provider)
                result = await engine.sync_account(job.account_id, since=job.since)
            self.stats["succeeded"] += 1
            return result

        except Exception as e:
            if is_retryable(e) and job.attempt < self.max_retries:
                delay = retry_delay(job.attempt + 1, self.retry_base_delay)
                await self.queue.retry_later(job, delay)
                self.stats["retried"] += 1
                logger.warning(
                    f"Sync {job.key} failed (attempt {job.attempt + 1}), "
                    f"retrying in {delay:.0f}s: {e}"
                )
            else:
                self.stats["failed"] += 1
                logger.error(f"Sync {job.key} failed permanently: {e}")
            return None

        finally:
            await self.queue.mark_complete(job)

    async def _refresh_queue(self):
        """Queue accounts whose last completed sync is older than the minimum interval."""
        cutoff = utcnow() - timedelta(hours=settings.sync_min_interval_hours)

        async with self._db_factory() as db:
            repo = WatermarkRepository(db)

            result = await db.execute(
                select(Credential.account_id, Credential.provider)
            )
            for account_id, provider in result.all():
                watermark = await repo.get_for(account_id, provider)
                if not watermark or not watermark.last_synced_at:
                    await self.queue.add_job(SyncJob(account_id, provider), priority=True)
                elif watermark.last_synced_at < cutoff:
                    await self.queue.add_job(SyncJob(account_id, provider))

            # API-key providers have no credential rows; reuse their watermarks
            if settings.hevy_api_key:
                for watermark in await repo.get_due("hevy", cutoff):
                    await self.queue.add_job(SyncJob(watermark.account_id, "hevy"))

        logger.debug(f"Refreshed sync queue: {self.queue.queue_size} jobs")


# Started by the application lifespan
background_sync = BackgroundSyncRunner()


# =============================================================================
# Helper Functions
# =============================================================================

async def trigger_account_sync(
    account_id: str,
    provider: str = "strava",
    since: Optional[datetime] = None
) -> bool:
    """
    Queue a sync for an account ahead of scheduled work.

    Returns:
        False if a sync for the account is already queued or running
    """
    queued = await sync_queue.add_job(SyncJob(account_id, provider, since), priority=True)
    if queued:
        logger.info(f"Queued {provider} sync for account {account_id}")
    return queued


def get_sync_stats() -> dict:
    """Queue depth and runner counters for /sync/stats."""
    return {
        "queue_size": sync_queue.queue_size,
        "in_progress": sync_queue.in_progress_count,
        "running": background_sync.running,
        **background_sync.stats,
    }
