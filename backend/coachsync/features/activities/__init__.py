"""
Activity records.

Components:
- ActivityRecord: stored workout
- ActivityData: adapter output before persistence
- ActivityRepository: idempotent upsert and queries
"""

from .models import ActivityRecord
from .schemas import ActivityData, ActivityResponse
from .repository import ActivityRepository

__all__ = [
    "ActivityRecord",
    "ActivityData",
    "ActivityResponse",
    "ActivityRepository",
]
