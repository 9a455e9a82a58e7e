"""
Typed cached reads.

Single-item lookups built on ConditionalFetcher.fetch, each with its own
freshness budget. They share the response cache with everything else the
fetcher serves, so a repeated lookup inside the budget costs no request
and a stale one is revalidated with its ETag.

Usage:
    reads = StravaReads(build_fetcher(tokens, "strava"))
    run = await reads.latest_run("athlete-1")
    laps = await reads.laps("athlete-1", run["id"])
"""

from datetime import timedelta
from typing import Any

from coachsync.shared.errors import DecodeError, NotFoundError
from .client import ConditionalFetcher

READ_TTL = timedelta(hours=24)

RUN_SPORT_TYPES = ("Run", "TrailRun")
STREAM_KEYS = ("time", "heartrate", "velocity_smooth", "distance", "altitude")


def _expect(payload: Any, kind: type, what: str) -> Any:
    if not isinstance(payload, kind):
        raise DecodeError(f"Expected {what}, got {type(payload).__name__}")
    return payload


class StravaReads:
    """Strava activity lookups."""

    def __init__(self, fetcher: ConditionalFetcher, ttl: timedelta = READ_TTL):
        self.fetcher = fetcher
        self.ttl = ttl

    async def latest_run(self, account_id: str) -> dict:
        """
        Most recent running activity among the last 10 activities.

        Raises:
            NotFoundError: None of them is a run
        """
        activities = await self.fetcher.fetch(
            "/athlete/activities",
            {"per_page": 10, "include_all_efforts": "true"},
            self.ttl,
            account_id=account_id,
        )
        for activity in _expect(activities, list, "a list of Strava activities"):
            if activity.get("sport_type") in RUN_SPORT_TYPES:
                return activity
        raise NotFoundError(f"No recent run activity for account {account_id}")

    async def activity(self, account_id: str, activity_id: int) -> dict:
        payload = await self.fetcher.fetch(
            f"/activities/{activity_id}",
            {"include_all_efforts": "true"},
            self.ttl,
            account_id=account_id,
        )
        return _expect(payload, dict, "a Strava activity")

    async def laps(self, account_id: str, activity_id: int) -> list[dict]:
        payload = await self.fetcher.fetch(
            f"/activities/{activity_id}/laps", None, self.ttl, account_id=account_id
        )
        return _expect(payload, list, "a list of Strava laps")

    async def streams(self, account_id: str, activity_id: int) -> dict[str, dict]:
        """
        Time, heart rate, velocity, distance and altitude streams keyed by type.

        Streams the activity does not record are absent from the result.
        """
        payload = await self.fetcher.fetch(
            f"/activities/{activity_id}/streams",
            {"keys": ",".join(STREAM_KEYS), "key_by_type": "true"},
            self.ttl,
            account_id=account_id,
        )
        streams = _expect(payload, dict, "Strava streams keyed by type")
        return {key: streams[key] for key in STREAM_KEYS if key in streams}


class HevyReads:
    """Hevy workout lookups."""

    def __init__(self, fetcher: ConditionalFetcher, ttl: timedelta = READ_TTL):
        self.fetcher = fetcher
        self.ttl = ttl

    async def workouts(self, account_id: str, page: int = 1) -> dict:
        """One page of the workout feed (pages start at 1), newest first."""
        payload = await self.fetcher.fetch(
            "/v1/workouts", {"page": max(page, 1)}, self.ttl, account_id=account_id
        )
        return _expect(payload, dict, "a Hevy workouts object")

    async def latest_workout(self, account_id: str) -> dict:
        """
        First workout of page 1.

        Raises:
            NotFoundError: The account has no workouts
        """
        workouts = self.fetcher.adapter.decode_page(await self.workouts(account_id, 1))
        if not workouts:
            raise NotFoundError(f"No Hevy workouts for account {account_id}")
        return workouts[0]

    async def workout(self, account_id: str, workout_id: str) -> dict:
        payload = await self.fetcher.fetch(
            f"/v1/workouts/{workout_id}", None, self.ttl, account_id=account_id
        )
        return _expect(payload, dict, "a Hevy workout")
