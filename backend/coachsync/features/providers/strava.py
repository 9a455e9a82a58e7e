"""
Strava adapter.

Strava API:
- GET /api/v3/athlete/activities?after=<unix>&page=N&per_page=M
- Bearer token authentication
- Response: JSON array of activity summaries, empty array past the end

Data Policy:
- Raw activity data can be cached for max 7 days
- GPS coordinates and maps should NOT be stored
"""

from datetime import datetime
from typing import Any

from coachsync.features.activities.schemas import ActivityData
from coachsync.shared.clock import parse_iso8601, to_unix
from coachsync.shared.errors import DecodeError
from .base import ProviderAdapter

# Summary fields kept in raw_payload
_RAW_FIELDS = (
    "id", "name", "type", "sport_type", "start_date", "start_date_local",
    "timezone", "elapsed_time", "moving_time", "distance",
    "total_elevation_gain", "average_heartrate", "max_heartrate",
    "average_speed", "max_speed", "workout_type",
)


class StravaAdapter(ProviderAdapter):
    """Strava athlete activity feed."""

    name = "strava"
    api_base = "https://www.strava.com/api/v3"
    activities_path = "/athlete/activities"
    filters_since_server_side = True
    max_page_size = 200

    def page_params(self, page: int, since: datetime, page_size: int) -> dict[str, Any]:
        return {
            "after": to_unix(since),
            "page": page,
            "per_page": self.effective_page_size(page_size),
        }

    def decode_page(self, payload: Any) -> list[dict]:
        if not isinstance(payload, list):
            raise DecodeError(
                f"Expected a list of Strava activities, got {type(payload).__name__}"
            )
        return payload

    def to_activity(self, item: dict) -> ActivityData:
        activity_id = self._require(item, "id")
        start_date = self._require(item, "start_date")

        try:
            started_at = parse_iso8601(start_date)
        except ValueError as e:
            raise DecodeError(f"Bad Strava start_date {start_date!r}: {e}") from e

        avg_hr = item.get("average_heartrate")

        return ActivityData(
            source_id=str(activity_id),
            name=item.get("name"),
            sport=item.get("sport_type") or item.get("type") or "Workout",
            started_at=started_at,
            duration_sec=int(item.get("elapsed_time") or 0),
            distance_m=item.get("distance"),
            elevation_gain_m=item.get("total_elevation_gain"),
            avg_heart_rate=int(avg_hr) if avg_hr is not None else None,
            raw_payload={k: item[k] for k in _RAW_FIELDS if k in item},
        )
