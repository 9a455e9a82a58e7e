"""
Database Models

Feature models live next to their features; this module only
exposes the declarative base and a helper that imports every model
so it is registered on Base.metadata.
"""

from coachsync.models.base import Base


def register_models() -> None:
    """Import all feature models so they are registered with SQLAlchemy."""
    from coachsync.features.credentials.models import Credential  # noqa
    from coachsync.features.activities.models import ActivityRecord  # noqa
    from coachsync.features.sync.models import SyncWatermark  # noqa


__all__ = ["Base", "register_models"]
