"""
API route tests.

The app runs on httpx.ASGITransport without its lifespan, so the
background runner stays off. The database and OAuth client are replaced
through dependency overrides. Queue state is process-global, so every
test uses its own account id.
"""

from datetime import datetime
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from coachsync import __version__
from coachsync.api.deps import get_oauth_client
from coachsync.db.session import get_async_db
from coachsync.features.activities import ActivityData, ActivityRepository
from coachsync.features.credentials import DatabaseCredentialStore, OAuthClient
from coachsync.features.sync import WatermarkRepository, sync_queue
from coachsync.main import app
from conftest import mock_client


def _token_endpoint(request):
    if b"code=bad" in request.content:
        return httpx.Response(400, json={"message": "Bad Request"})
    return httpx.Response(200, json={
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_at": 2_000_000_000,
        "athlete": {"id": 987},
    })


def _oauth(client_id="12345"):
    return OAuthClient(
        provider="strava",
        client_id=client_id,
        client_secret="secret",
        token_url="https://www.strava.com/oauth/token",
        authorize_url="https://www.strava.com/oauth/authorize",
        default_scope="read,activity:read_all",
        http_client=mock_client(_token_endpoint),
    )


@pytest.fixture
def oauth():
    return _oauth()


@pytest.fixture
async def client(session_factory, oauth):
    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_db
    app.dependency_overrides[get_oauth_client] = lambda: oauth

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as http:
        yield http

    app.dependency_overrides.clear()


async def _drain(account_id: str, provider: str = "strava"):
    """Take the test's job off the global queue again."""
    for job in await sync_queue.get_next_jobs(sync_queue.queue_size):
        await sync_queue.mark_complete(job)
        if job.key != (provider, account_id):
            await sync_queue.add_job(job)


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__}


# =============================================================================
# Sync
# =============================================================================

class TestSyncRoutes:
    """Queueing and status."""

    async def test_queue_sync_accepted(self, client):
        response = await client.post("/api/v1/accounts/route-queue/sync")

        assert response.status_code == 202
        assert response.json()["queued"] is True
        assert sync_queue.is_pending("route-queue")

        again = await client.post("/api/v1/accounts/route-queue/sync")
        assert again.status_code == 202
        assert again.json()["queued"] is False

        await _drain("route-queue")

    async def test_queue_sync_with_since(self, client):
        response = await client.post(
            "/api/v1/accounts/route-since/sync",
            params={"provider": "hevy", "since": "2024-01-01T00:00:00"},
        )

        body = response.json()
        assert body["provider"] == "hevy"
        assert body["since"] == "2024-01-01T00:00:00"

        await _drain("route-since", "hevy")

    async def test_unknown_provider(self, client):
        response = await client.post("/api/v1/accounts/x/sync", params={"provider": "garmin"})
        assert response.status_code == 400

    async def test_status_without_history(self, client):
        response = await client.get("/api/v1/accounts/route-new/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["last_synced_at"] is None
        assert body["total_synced"] == 0
        assert body["pending"] is False

    async def test_status_reports_watermark(self, client, session_factory):
        async with session_factory() as db:
            repo = WatermarkRepository(db)
            watermark = await repo.get_or_create("route-status", "strava")
            await repo.update(
                watermark,
                last_synced_at=datetime(2024, 5, 1, 12, 0),
                last_attempt_at=datetime(2024, 5, 1, 18, 0),
                last_error="UpstreamError: GET ... -> 503",
                total_synced=42,
            )
            await db.commit()

        body = (await client.get("/api/v1/accounts/route-status/sync")).json()

        assert body["last_synced_at"] == "2024-05-01T12:00:00"
        assert body["last_attempt_at"] == "2024-05-01T18:00:00"
        assert body["last_error"].startswith("UpstreamError")
        assert body["total_synced"] == 42

    async def test_activities_newest_first(self, client, session_factory):
        async with session_factory() as db:
            repo = ActivityRepository(db)
            for n, day in ((1, 1), (2, 3)):
                await repo.upsert("route-acts", "strava", ActivityData(
                    source_id=str(n),
                    sport="Run",
                    started_at=datetime(2024, 5, day, 7, 0),
                    name=f"Run {n}",
                    duration_sec=1800,
                    distance_m=5000.0,
                ))
            await db.commit()

        response = await client.get("/api/v1/accounts/route-acts/activities")

        assert response.status_code == 200
        assert [a["source_id"] for a in response.json()] == ["2", "1"]
        assert response.json()[0]["source"] == "strava"

        limited = await client.get(
            "/api/v1/accounts/route-acts/activities", params={"limit": 1, "offset": 1}
        )
        assert [a["source_id"] for a in limited.json()] == ["1"]

    async def test_stats(self, client):
        body = (await client.get("/api/v1/sync/stats")).json()

        assert body["running"] is False
        assert {"queue_size", "in_progress", "succeeded", "retried", "failed"} <= set(body)


# =============================================================================
# OAuth
# =============================================================================

class TestOAuthRoutes:
    """Authorization redirect and callback."""

    async def _start(self, client, account_id):
        response = await client.get(
            "/api/v1/oauth/strava/start", params={"account_id": account_id}
        )
        assert response.status_code == 307
        location = urlparse(response.headers["location"])
        return location, parse_qs(location.query)

    async def test_start_redirects_to_consent_page(self, client):
        location, query = await self._start(client, "route-oauth-start")

        assert location.netloc == "www.strava.com"
        assert query["client_id"] == ["12345"]
        assert query["redirect_uri"][0].endswith("/api/v1/oauth/strava/callback")
        assert query["state"][0]

    async def test_start_not_configured(self, client, oauth):
        oauth.client_id = None
        response = await client.get(
            "/api/v1/oauth/strava/start", params={"account_id": "x"}
        )
        assert response.status_code == 503

    async def test_hevy_has_no_oauth(self, client):
        response = await client.get("/api/v1/oauth/hevy/start", params={"account_id": "x"})
        assert response.status_code == 400

    async def test_callback_stores_credential_and_queues_sync(self, client, session_factory):
        _, query = await self._start(client, "route-oauth-cb")

        response = await client.get(
            "/api/v1/oauth/strava/callback",
            params={"code": "good", "state": query["state"][0]},
        )

        assert response.status_code == 200
        assert response.json() == {
            "status": "connected",
            "account_id": "route-oauth-cb",
            "provider": "strava",
            "athlete_id": "987",
            "sync_queued": True,
        }
        async with session_factory() as db:
            tokens = await DatabaseCredentialStore(db).get("route-oauth-cb", "strava")
        assert tokens.access_token == "access-1"
        assert tokens.refresh_token == "refresh-1"
        assert tokens.expires_at == 2_000_000_000

        await _drain("route-oauth-cb")

    async def test_state_is_single_use(self, client):
        _, query = await self._start(client, "route-oauth-once")
        state = query["state"][0]

        await client.get("/api/v1/oauth/strava/callback", params={"code": "good", "state": state})
        replay = await client.get(
            "/api/v1/oauth/strava/callback", params={"code": "good", "state": state}
        )

        assert replay.status_code == 400
        await _drain("route-oauth-once")

    async def test_unknown_state(self, client):
        response = await client.get(
            "/api/v1/oauth/strava/callback", params={"code": "good", "state": "forged"}
        )
        assert response.status_code == 400

    async def test_denied_by_user(self, client):
        response = await client.get(
            "/api/v1/oauth/strava/callback", params={"error": "access_denied"}
        )
        assert response.status_code == 400

    async def test_exchange_failure(self, client):
        _, query = await self._start(client, "route-oauth-bad")

        response = await client.get(
            "/api/v1/oauth/strava/callback",
            params={"code": "bad", "state": query["state"][0]},
        )

        assert response.status_code == 502
        assert not sync_queue.is_pending("route-oauth-bad")
