"""
Activity database model.

Models:
- ActivityRecord: one workout from an upstream platform
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Float, JSON, UniqueConstraint

from coachsync.models.base import Base


class ActivityRecord(Base):
    """
    Synchronized workout summary.

    (account_id, source, source_id) identifies a record; re-ingesting
    the same upstream id updates the row in place.
    """

    __tablename__ = "activity_records"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "source", "source_id",
            name="uq_activity_records_account_source_id"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(64), nullable=False, index=True)

    # Upstream identifiers
    source = Column(String(32), nullable=False, default="strava")
    source_id = Column(String(64), nullable=False)  # Strava: numeric id, Hevy: uuid

    # Activity info
    name = Column(String(255), nullable=True)
    sport = Column(String(50), nullable=False)  # Run, Ride, Strength, etc.
    started_at = Column(DateTime, nullable=False, index=True)

    # Core metrics
    duration_sec = Column(Integer, nullable=False, default=0)
    distance_m = Column(Float, nullable=True)
    elevation_gain_m = Column(Float, nullable=True)
    avg_heart_rate = Column(Integer, nullable=True)

    # Upstream item as received
    raw_payload = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ActivityRecord {self.source}:{self.source_id} {self.sport} {self.distance_m}m>"

    @property
    def distance_km(self) -> float | None:
        """Distance in kilometers."""
        return self.distance_m / 1000 if self.distance_m is not None else None
