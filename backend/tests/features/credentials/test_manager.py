"""
Tests for TokenManager and StaticTokenSource.

The OAuth client is a double that counts refresh calls, so the tests
state exactly how often the token endpoint was hit.
"""

import asyncio
import gc

import pytest

from coachsync.features.credentials import (
    RefreshLocks,
    StaticTokenSource,
    TokenManager,
    TokenSet,
)
from coachsync.shared.errors import NoCredentialError, RefreshFailedError


NOW = 1_714_564_800


# =============================================================================
# Doubles
# =============================================================================

class MemoryStore:
    """In-memory CredentialStore."""

    def __init__(self, *tokens: TokenSet):
        self.tokens = {(t.account_id, t.provider): t for t in tokens}
        self.saves = 0

    async def get(self, account_id, provider):
        return self.tokens.get((account_id, provider))

    async def save(self, tokens):
        self.saves += 1
        self.tokens[(tokens.account_id, tokens.provider)] = tokens


class FakeOAuth:
    """Token endpoint double issuing numbered tokens."""

    provider = "strava"

    def __init__(self, error=None, delay=0.0):
        self.calls = []
        self.error = error
        self.delay = delay

    async def refresh_token(self, refresh_token):
        self.calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        n = len(self.calls)
        return {
            "access_token": f"access-{n}",
            "refresh_token": f"refresh-{n}",
            "expires_at": NOW + 21600,
            "scope": None,
        }


def _credential(expires_in: int, refresh_token="refresh-0") -> TokenSet:
    return TokenSet(
        account_id="A",
        provider="strava",
        access_token="access-0",
        refresh_token=refresh_token,
        expires_at=NOW + expires_in,
        scope="read",
        external_athlete_id="987",
    )


def _manager(store, oauth) -> TokenManager:
    return TokenManager(store, oauth, refresh_margin=120, clock=lambda: NOW, locks=RefreshLocks())


# =============================================================================
# get_valid_token
# =============================================================================

class TestGetValidToken:
    """Tests for the proactive path."""

    async def test_valid_token_returned_without_refresh(self):
        store = MemoryStore(_credential(expires_in=3600))
        oauth = FakeOAuth()

        token = await _manager(store, oauth).get_valid_token("A")

        assert token == "access-0"
        assert oauth.calls == []
        assert store.saves == 0

    async def test_token_inside_margin_refreshed_once(self):
        """expires_at 60 s from now: exactly one refresh, new token returned."""
        store = MemoryStore(_credential(expires_in=60))
        oauth = FakeOAuth()

        token = await _manager(store, oauth).get_valid_token("A")

        assert token == "access-1"
        assert oauth.calls == ["refresh-0"]

    async def test_refresh_overwrites_all_fields(self):
        store = MemoryStore(_credential(expires_in=60))
        await _manager(store, FakeOAuth()).get_valid_token("A")

        saved = store.tokens[("A", "strava")]
        assert saved.access_token == "access-1"
        assert saved.refresh_token == "refresh-1"
        assert saved.expires_at == NOW + 21600
        # Preserved from the previous credential
        assert saved.scope == "read"
        assert saved.external_athlete_id == "987"

    async def test_expired_token_refreshed(self):
        store = MemoryStore(_credential(expires_in=-600))
        assert await _manager(store, FakeOAuth()).get_valid_token("A") == "access-1"

    async def test_missing_credential(self):
        with pytest.raises(NoCredentialError) as exc_info:
            await _manager(MemoryStore(), FakeOAuth()).get_valid_token("A")

        assert exc_info.value.reason == "not_found"
        assert not exc_info.value.retryable

    async def test_expiring_without_refresh_token(self):
        store = MemoryStore(_credential(expires_in=60, refresh_token=None))

        with pytest.raises(NoCredentialError) as exc_info:
            await _manager(store, FakeOAuth()).get_valid_token("A")
        assert exc_info.value.reason == "no_refresh_token"

    async def test_refresh_failure_propagates_unchanged(self):
        error = RefreshFailedError("boom", status=503)
        store = MemoryStore(_credential(expires_in=60))

        with pytest.raises(RefreshFailedError) as exc_info:
            await _manager(store, FakeOAuth(error=error)).get_valid_token("A")

        assert exc_info.value is error
        # Stored credential untouched
        assert store.tokens[("A", "strava")].access_token == "access-0"

    async def test_concurrent_callers_share_one_refresh(self):
        store = MemoryStore(_credential(expires_in=60))
        oauth = FakeOAuth(delay=0.01)
        manager = _manager(store, oauth)

        tokens = await asyncio.gather(*(manager.get_valid_token("A") for _ in range(5)))

        assert tokens == ["access-1"] * 5
        assert len(oauth.calls) == 1


# =============================================================================
# force_refresh
# =============================================================================

class TestForceRefresh:
    """Tests for the reactive path."""

    async def test_refreshes_even_if_not_expiring(self):
        store = MemoryStore(_credential(expires_in=3600))
        oauth = FakeOAuth()

        token = await _manager(store, oauth).force_refresh("A", stale_token="access-0")

        assert token == "access-1"
        assert len(oauth.calls) == 1

    async def test_skips_refresh_when_token_already_replaced(self):
        """Another caller refreshed after our request was rejected."""
        store = MemoryStore(_credential(expires_in=3600))
        oauth = FakeOAuth()

        token = await _manager(store, oauth).force_refresh("A", stale_token="older-token")

        assert token == "access-0"
        assert oauth.calls == []


class TestRefreshLocks:
    """Tests for the per-account lock registry."""

    def test_same_account_shares_lock_while_held(self):
        locks = RefreshLocks()
        held = locks.for_account("strava", "A")

        assert locks.for_account("strava", "A") is held
        assert locks.for_account("strava", "B") is not held
        assert locks.for_account("hevy", "A") is not held

    async def test_released_locks_are_dropped(self):
        locks = RefreshLocks()
        store = MemoryStore(_credential(expires_in=60))
        manager = TokenManager(store, FakeOAuth(), clock=lambda: NOW, locks=locks)

        await manager.get_valid_token("A")
        await manager.force_refresh("A")
        gc.collect()

        assert len(locks) == 0

    async def test_many_accounts_do_not_accumulate(self):
        locks = RefreshLocks()
        for i in range(100):
            async with locks.for_account("strava", f"athlete-{i}"):
                pass
        gc.collect()

        assert len(locks) == 0


class TestStoreAuthorization:
    """Tests for store_authorization()."""

    async def test_persists_exchange_result(self):
        store = MemoryStore()
        manager = _manager(store, FakeOAuth())

        tokens = await manager.store_authorization("A", {
            "access_token": "a",
            "refresh_token": "r",
            "expires_at": NOW + 100,
            "scope": "read",
            "athlete_id": "987",
        })

        assert store.tokens[("A", "strava")] == tokens
        assert tokens.external_athlete_id == "987"


class TestStaticTokenSource:
    """Tests for API-key providers."""

    async def test_returns_key(self):
        assert await StaticTokenSource("hevy", "key-1").get_valid_token("A") == "key-1"

    async def test_missing_key(self):
        with pytest.raises(NoCredentialError):
            await StaticTokenSource("hevy", None).get_valid_token("A")

    async def test_rejected_key_cannot_refresh(self):
        with pytest.raises(NoCredentialError) as exc_info:
            await StaticTokenSource("hevy", "key-1").force_refresh("A", "key-1")
        assert exc_info.value.reason == "api_key_rejected"
