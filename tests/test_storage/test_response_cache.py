"""Tests for CacheStore — real SQLite storage, fake clock."""

from unittest.mock import patch

import pytest

from recruit_sync.storage.cache import CacheStore
from recruit_sync.storage.kv import KeyValueStore, StorageError


@pytest.fixture
def cache(kv_store: KeyValueStore, clock) -> CacheStore:
    return CacheStore(kv_store, clock=clock)


class TestCacheStore:
    async def test_missing_key_returns_none(self, cache: CacheStore) -> None:
        assert await cache.get("saved_contacts") is None

    async def test_put_then_get(self, cache: CacheStore, clock) -> None:
        await cache.put("saved_contacts", [{"id": "s1"}])

        entry = await cache.get("saved_contacts")
        assert entry is not None
        assert entry.key == "saved_contacts"
        assert entry.data == [{"id": "s1"}]
        assert entry.cached_at == clock.now

    async def test_put_overwrites_with_newer_timestamp(self, cache: CacheStore, clock) -> None:
        await cache.put("k", 1)
        clock.advance(minutes=10)
        await cache.put("k", 2)

        entry = await cache.get("k")
        assert entry.data == 2
        assert entry.cached_at == clock.now

    async def test_stored_under_prefixed_key(self, cache: CacheStore, kv_store: KeyValueStore, clock) -> None:
        await cache.put("email_status", {"connected": True})
        raw = kv_store.get("cache_email_status")
        assert raw == {"data": {"connected": True}, "cachedAt": int(clock.now.timestamp() * 1000)}

    async def test_malformed_entry_reads_as_none(self, cache: CacheStore, kv_store: KeyValueStore) -> None:
        kv_store.set("cache_k", {"no": "timestamp"})
        assert await cache.get("k") is None

    async def test_write_failure_returns_none(self, cache: CacheStore, kv_store: KeyValueStore) -> None:
        with patch.object(kv_store, "set", side_effect=StorageError("read-only")):
            assert await cache.put("k", 1) is None

    async def test_clear_removes_only_cache_entries(self, cache: CacheStore, kv_store: KeyValueStore) -> None:
        await cache.put("a", 1)
        await cache.put("b", 2)
        kv_store.set("offline_queue", [])

        assert await cache.clear() == 2
        assert await cache.get("a") is None
        assert kv_store.get("offline_queue") == []
