"""Activity schemas: adapter output and API responses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


@dataclass
class ActivityData:
    """Provider-neutral activity produced by an adapter, before persistence."""

    source_id: str
    sport: str
    started_at: datetime
    name: Optional[str] = None
    duration_sec: int = 0
    distance_m: Optional[float] = None
    elevation_gain_m: Optional[float] = None
    avg_heart_rate: Optional[int] = None
    raw_payload: dict[str, Any] = field(default_factory=dict)


class ActivityResponse(BaseModel):
    """Stored activity as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    source: str
    source_id: str
    name: Optional[str] = None
    sport: str
    started_at: datetime
    duration_sec: int
    distance_m: Optional[float] = None
    elevation_gain_m: Optional[float] = None
    avg_heart_rate: Optional[int] = None
