"""
Sync configuration.

Defaults come from settings; tests and the CLI construct their own.
"""

from dataclasses import dataclass
from datetime import timedelta

from coachsync.config import settings


@dataclass
class SyncConfig:
    """Configuration for sync behavior."""

    # Re-walk this much before the watermark (clock skew, late edits)
    overlap: timedelta = timedelta(hours=12)

    # Window of the first sync of an account
    default_lookback: timedelta = timedelta(days=14)

    # How many activities to request per page
    page_size: int = 50

    @classmethod
    def from_settings(cls) -> "SyncConfig":
        return cls(
            overlap=timedelta(hours=settings.sync_overlap_hours),
            default_lookback=timedelta(days=settings.sync_default_lookback_days),
            page_size=settings.sync_page_size,
        )
