"""
Hevy adapter.

Hevy API:
- GET /v1/workouts?page=N&pageSize=M (pageSize max 10)
- ``api-key`` header authentication
- Response: {"page": N, "page_count": K, "workouts": [...]}, newest first

The feed has no time filter, so the sync engine filters by ``since``
and stops once a page holds only older workouts.
"""

from datetime import datetime
from typing import Any

from coachsync.features.activities.schemas import ActivityData
from coachsync.shared.clock import parse_iso8601
from coachsync.shared.errors import DecodeError
from .base import ProviderAdapter


class HevyAdapter(ProviderAdapter):
    """Hevy workout feed."""

    name = "hevy"
    api_base = "https://api.hevyapp.com"
    activities_path = "/v1/workouts"
    filters_since_server_side = False
    max_page_size = 10

    def auth_headers(self, token: str) -> dict[str, str]:
        return {"api-key": token, "Accept": "application/json"}

    def page_params(self, page: int, since: datetime, page_size: int) -> dict[str, Any]:
        return {"page": page, "pageSize": self.effective_page_size(page_size)}

    def decode_page(self, payload: Any) -> list[dict]:
        if not isinstance(payload, dict):
            raise DecodeError(
                f"Expected a Hevy workouts object, got {type(payload).__name__}"
            )

        page = payload.get("page")
        page_count = payload.get("page_count")
        if page and page_count is not None and page > page_count:
            return []

        workouts = payload.get("workouts", [])
        if not isinstance(workouts, list):
            raise DecodeError("Hevy 'workouts' is not a list")
        return workouts

    def is_last_page(self, payload: Any, page: int) -> bool:
        # Hevy answers 404 for pages past page_count
        page_count = payload.get("page_count") if isinstance(payload, dict) else None
        return page_count is not None and page >= page_count

    def to_activity(self, item: dict) -> ActivityData:
        workout_id = self._require(item, "id")

        try:
            started_at = parse_iso8601(self._require(item, "start_time"))
            end_time = item.get("end_time")
            ended_at = parse_iso8601(end_time) if end_time else None
        except ValueError as e:
            raise DecodeError(f"Bad Hevy workout time in {workout_id}: {e}") from e

        duration = 0
        if ended_at and ended_at > started_at:
            duration = int((ended_at - started_at).total_seconds())

        return ActivityData(
            source_id=str(workout_id),
            name=item.get("title"),
            sport="Strength",
            started_at=started_at,
            duration_sec=duration,
            raw_payload=item,
        )
