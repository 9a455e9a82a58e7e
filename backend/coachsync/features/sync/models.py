"""
Sync state database model.

Models:
- SyncWatermark: per (account, source) incremental sync position
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, UniqueConstraint

from coachsync.models.base import Base


class SyncWatermark(Base):
    """
    Tracks incremental sync position per account and source.

    Used to:
    - Compute the default `since` of the next sync
    - Report the last failure of an aborted sync
    """

    __tablename__ = "sync_watermarks"
    __table_args__ = (
        UniqueConstraint("account_id", "source", name="uq_sync_watermarks_account_source"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(64), nullable=False, index=True)
    source = Column(String(32), nullable=False)

    # Start time of the last sync that walked every page
    last_synced_at = Column(DateTime, nullable=True)

    # Bookkeeping
    last_attempt_at = Column(DateTime, nullable=True)
    last_error = Column(String(500), nullable=True)
    total_synced = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SyncWatermark {self.account_id}:{self.source} {self.last_synced_at}>"
