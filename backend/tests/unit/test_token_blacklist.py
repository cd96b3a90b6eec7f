"""Unit tests for the refresh token replay guard."""

import time

import pytest

from app.services.token_blacklist import (
    BlacklistEntry,
    InMemoryBlacklistStore,
    ReplayGuard,
    derive_token_id,
)


@pytest.fixture
def store():
    return InMemoryBlacklistStore()


@pytest.fixture
def guard(store):
    return ReplayGuard(store)


class TestDeriveTokenId:
    def test_fixed_length_hex(self):
        assert len(derive_token_id("short")) == 64
        assert len(derive_token_id("x" * 5000)) == 64

    def test_deterministic(self):
        assert derive_token_id("abc") == derive_token_id("abc")
        assert derive_token_id("abc") != derive_token_id("abd")


@pytest.mark.asyncio
class TestReplayGuard:
    async def test_unknown_token_is_not_blacklisted(self, guard):
        assert await guard.is_blacklisted("never-seen") is False

    async def test_blacklisted_token_is_detected(self, guard):
        await guard.blacklist("token-a", 42, time.time() + 3600)
        assert await guard.is_blacklisted("token-a") is True
        assert await guard.is_blacklisted("token-b") is False

    async def test_raw_token_is_not_stored(self, guard, store):
        await guard.blacklist("token-a", 42, time.time() + 3600)
        entry = await store.get(derive_token_id("token-a"))
        assert entry is not None
        assert entry.subject_id == 42
        assert await store.get("token-a") is None

    async def test_blacklisting_twice_is_idempotent(self, guard):
        expires_at = time.time() + 3600
        await guard.blacklist("token-a", 42, expires_at)
        await guard.blacklist("token-a", 42, expires_at)
        stats = await guard.stats()
        assert stats.total_entries == 1
        assert await guard.is_blacklisted("token-a") is True

    async def test_expired_entry_is_removed_on_lookup(self, guard, store):
        await guard.blacklist("token-a", 42, time.time() - 1)
        assert (await guard.stats()).total_entries == 1

        assert await guard.is_blacklisted("token-a") is False
        assert (await guard.stats()).total_entries == 0

    async def test_purge_expired(self, guard):
        now = time.time()
        await guard.blacklist("old-1", 1, now - 10)
        await guard.blacklist("old-2", 2, now - 5)
        await guard.blacklist("live", 3, now + 3600)

        removed = await guard.purge_expired()

        assert removed == 2
        assert await guard.is_blacklisted("live") is True
        stats = await guard.stats()
        assert stats.total_entries == 1
        assert stats.active_entries == 1

    async def test_stats_counts_active_and_expired(self, guard):
        now = time.time()
        await guard.blacklist("old", 1, now - 10)
        await guard.blacklist("live", 2, now + 3600)

        stats = await guard.stats()

        assert stats.total_entries == 2
        assert stats.active_entries == 1


@pytest.mark.asyncio
class TestInMemoryBlacklistStore:
    async def test_put_get_delete(self, store):
        entry = BlacklistEntry("abc", 7, time.time(), time.time() + 60)
        await store.put(entry)
        assert await store.get("abc") == entry
        await store.delete("abc")
        assert await store.get("abc") is None

    async def test_delete_missing_is_noop(self, store):
        await store.delete("missing")

    async def test_clear(self, store):
        await store.put(BlacklistEntry("abc", 7, time.time(), time.time() + 60))
        store.clear()
        assert (await store.count(time.time())).total_entries == 0
