"""
Incremental activity sync.

Sync Flow:
1. Resolve `since`: explicit value, else watermark - overlap,
   else now - default lookback
2. Obtain a valid token (fails fast without a credential)
3. Walk the feed from page 1, upserting every item, until an empty page
4. Set the watermark to the time the sync started

Any error aborts the remaining pages. The watermark stays where it was,
the error is recorded on it and re-raised for the job runner to classify.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, Optional

from coachsync.features.fetcher import ConditionalFetcher
from coachsync.shared.clock import utcnow, to_naive_utc
from .config import SyncConfig
from .repository import SyncSink

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one completed sync."""

    account_id: str
    source: str
    since: datetime
    started_at: datetime
    pages: int = 0
    upserted: int = 0
    created: int = 0
    skipped: int = 0  # outside the window, filtered locally

    def to_dict(self) -> dict:
        data = asdict(self)
        data["since"] = self.since.isoformat()
        data["started_at"] = self.started_at.isoformat()
        return data


class SyncEngine:
    """
    Walks one provider's activity feed for an account.

    Usage:
        engine = SyncEngine(fetcher, DatabaseSyncSink(db))
        result = await engine.sync_account(account_id)
    """

    def __init__(
        self,
        fetcher: ConditionalFetcher,
        sink: SyncSink,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.fetcher = fetcher
        self.adapter = fetcher.adapter
        self.sink = sink
        self.config = config or SyncConfig()
        self._clock = clock

    @property
    def source(self) -> str:
        return self.adapter.name

    async def resolve_since(self, account_id: str, now: datetime) -> datetime:
        """Default window start for an incremental sync."""
        watermark = await self.sink.get_watermark(account_id, self.source)
        if watermark is not None:
            return watermark - self.config.overlap
        return now - self.config.default_lookback

    async def sync_account(
        self,
        account_id: str,
        since: Optional[datetime] = None
    ) -> SyncResult:
        """
        Sync activities started at or after ``since``.

        Args:
            account_id: Local account id
            since: Explicit window start; may lie before the watermark to
                force re-ingestion of edited records

        Returns:
            SyncResult for the completed sync

        Raises:
            Whatever aborted the sync (see sync.retry for classification)
        """
        started_at = self._clock()
        if since is None:
            since = await self.resolve_since(account_id, started_at)
        else:
            since = to_naive_utc(since)

        result = SyncResult(
            account_id=account_id,
            source=self.source,
            since=since,
            started_at=started_at,
        )
        logger.info(f"Syncing {self.source} for account {account_id} since {since.isoformat()}")

        try:
            await self.fetcher.tokens.get_valid_token(account_id)
            await self._walk_feed(result)
        except Exception as e:
            logger.warning(
                f"{self.source} sync aborted for account {account_id} "
                f"after {result.pages} pages: {e}"
            )
            await self._record_failure(account_id, e, started_at)
            raise

        await self.sink.set_watermark(account_id, self.source, started_at, result.upserted)
        logger.info(
            f"{self.source} sync done for account {account_id}: "
            f"{result.upserted} upserted ({result.created} new) in {result.pages} pages"
        )
        return result

    async def _walk_feed(self, result: SyncResult) -> None:
        adapter = self.adapter
        page = 1

        while True:
            payload = await self.fetcher.fetch(
                adapter.activities_path,
                adapter.page_params(page, result.since, self.config.page_size),
                account_id=result.account_id,
                use_cache=False,
            )
            items = adapter.decode_page(payload)
            if not items:
                break

            result.pages += 1
            in_window = 0
            for item in items:
                activity = adapter.to_activity(item)
                if not adapter.filters_since_server_side and activity.started_at < result.since:
                    result.skipped += 1
                    continue

                created = await self.sink.upsert_activity(
                    result.account_id, adapter.name, activity
                )
                in_window += 1
                result.upserted += 1
                if created:
                    result.created += 1

            logger.debug(f"{adapter.name} page {page}: {len(items)} items, {in_window} in window")

            # Newest-first feeds: a page with nothing in the window ends the walk
            if not adapter.filters_since_server_side and in_window == 0:
                break
            if adapter.is_last_page(payload, page):
                break
            page += 1

    async def _record_failure(self, account_id: str, error: Exception, attempted_at: datetime):
        try:
            await self.sink.record_failure(
                account_id, self.source, f"{type(error).__name__}: {error}", attempted_at
            )
        except Exception as e:
            logger.error(f"Failed to record sync failure for account {account_id}: {e}")
