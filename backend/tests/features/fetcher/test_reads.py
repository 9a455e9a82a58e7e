"""
Tests for the typed cached reads.
"""

from datetime import datetime

import httpx
import pytest

from coachsync.features.cache import MemoryCacheStore
from coachsync.features.credentials import StaticTokenSource
from coachsync.features.fetcher import ConditionalFetcher, HevyReads, StravaReads
from coachsync.features.providers import HevyAdapter, StravaAdapter
from coachsync.shared.errors import DecodeError, NotFoundError
from conftest import mock_client, strava_activity


class StaticTokens:
    """TokenSource double for Strava."""

    provider = "strava"

    async def get_valid_token(self, account_id):
        return "t1"

    async def force_refresh(self, account_id, stale_token=None):
        return "t1"


class Upstream:
    """Answers every request with ``payload`` and records it."""

    def __init__(self, payload, etag='"v1"'):
        self.payload = payload
        self.etag = etag
        self.requests: list[httpx.Request] = []

    def __call__(self, request):
        self.requests.append(request)
        if request.headers.get("If-None-Match") == self.etag:
            return httpx.Response(304)
        return httpx.Response(200, json=self.payload, headers={"ETag": self.etag})


def _strava(upstream, clock):
    fetcher = ConditionalFetcher(
        StravaAdapter(), StaticTokens(), MemoryCacheStore(clock=clock),
        http_client=mock_client(upstream),
    )
    return StravaReads(fetcher)


def _hevy(upstream, clock):
    fetcher = ConditionalFetcher(
        HevyAdapter(), StaticTokenSource("hevy", "key-1"), MemoryCacheStore(clock=clock),
        http_client=mock_client(upstream),
    )
    return HevyReads(fetcher)


RIDE = strava_activity(3, datetime(2024, 4, 30, 7, 0), sport_type="Ride", type="Ride")
TRAIL = strava_activity(2, datetime(2024, 4, 29, 7, 0), sport_type="TrailRun")
RUN = strava_activity(1, datetime(2024, 4, 28, 7, 0))


class TestStravaReads:
    """Tests for StravaReads."""

    async def test_latest_run_skips_other_sports(self, clock):
        upstream = Upstream([RIDE, TRAIL, RUN])

        run = await _strava(upstream, clock).latest_run("A")

        assert run["id"] == 2
        request = upstream.requests[0]
        assert request.url.path == "/api/v3/athlete/activities"
        assert request.url.params["per_page"] == "10"
        assert request.url.params["include_all_efforts"] == "true"

    async def test_latest_run_without_runs(self, clock):
        with pytest.raises(NotFoundError) as exc_info:
            await _strava(Upstream([RIDE]), clock).latest_run("A")
        assert not exc_info.value.retryable

    async def test_cached_for_a_day(self, clock):
        upstream = Upstream([RUN])
        reads = _strava(upstream, clock)

        await reads.latest_run("A")
        clock.advance(hours=23)
        await reads.latest_run("A")
        assert len(upstream.requests) == 1

        clock.advance(hours=2)
        assert (await reads.latest_run("A"))["id"] == 1
        assert len(upstream.requests) == 2
        assert upstream.requests[1].headers["If-None-Match"] == '"v1"'

    async def test_activity(self, clock):
        upstream = Upstream({"id": 42, "name": "Long Run"})

        activity = await _strava(upstream, clock).activity("A", 42)

        assert activity["name"] == "Long Run"
        assert upstream.requests[0].url.path == "/api/v3/activities/42"
        assert upstream.requests[0].url.params["include_all_efforts"] == "true"

    async def test_activity_wrong_shape(self, clock):
        with pytest.raises(DecodeError):
            await _strava(Upstream([]), clock).activity("A", 42)

    async def test_laps(self, clock):
        upstream = Upstream([{"lap_index": 1}, {"lap_index": 2}])

        laps = await _strava(upstream, clock).laps("A", 42)

        assert [lap["lap_index"] for lap in laps] == [1, 2]
        assert upstream.requests[0].url.path == "/api/v3/activities/42/laps"
        assert not upstream.requests[0].url.params

    async def test_streams_keeps_known_types(self, clock):
        upstream = Upstream({
            "time": {"data": [0, 1, 2]},
            "heartrate": {"data": [120, 125, 130]},
            "cadence": {"data": [80, 82, 84]},
        })

        streams = await _strava(upstream, clock).streams("A", 42)

        assert set(streams) == {"time", "heartrate"}
        params = upstream.requests[0].url.params
        assert params["keys"] == "time,heartrate,velocity_smooth,distance,altitude"
        assert params["key_by_type"] == "true"

    async def test_accounts_do_not_share_entries(self, clock):
        upstream = Upstream([RUN])
        reads = _strava(upstream, clock)

        await reads.latest_run("A")
        await reads.latest_run("B")

        assert len(upstream.requests) == 2


class TestHevyReads:
    """Tests for HevyReads."""

    async def test_latest_workout(self, clock):
        upstream = Upstream({
            "page": 1,
            "page_count": 3,
            "workouts": [{"id": "w-2", "title": "Push"}, {"id": "w-1", "title": "Pull"}],
        })

        workout = await _hevy(upstream, clock).latest_workout("A")

        assert workout["id"] == "w-2"
        request = upstream.requests[0]
        assert request.url.path == "/v1/workouts"
        assert request.url.params["page"] == "1"
        assert request.headers["api-key"] == "key-1"

    async def test_no_workouts(self, clock):
        upstream = Upstream({"page": 1, "page_count": 0, "workouts": []})

        with pytest.raises(NotFoundError):
            await _hevy(upstream, clock).latest_workout("A")

    async def test_workout_by_id(self, clock):
        upstream = Upstream({"id": "w-7", "title": "Legs"})

        workout = await _hevy(upstream, clock).workout("A", "w-7")

        assert workout["title"] == "Legs"
        assert upstream.requests[0].url.path == "/v1/workouts/w-7"

    async def test_page_floor_is_one(self, clock):
        upstream = Upstream({"page": 1, "page_count": 1, "workouts": []})

        await _hevy(upstream, clock).workouts("A", page=0)

        assert upstream.requests[0].url.params["page"] == "1"
