"""Tests for the TTL cache, its analytics and snapshot persistence."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from bookmerge.cache.snapshot import FileSnapshotStore
from bookmerge.cache.store import CacheAnalytics, HotKey, TTLCache, combine_analytics


class MemorySnapshotStore:
    """Snapshot store that keeps the last payload in memory."""

    def __init__(self, payload: dict[str, Any] | None = None, fail_save: bool = False) -> None:
        self.payload = payload
        self.fail_save = fail_save
        self.saves = 0
        self.closed = False
        self.saved = asyncio.Event()

    async def load(self) -> dict[str, Any] | None:
        return self.payload

    async def save(self, payload: dict[str, Any]) -> None:
        if self.fail_save:
            raise OSError("disk full")
        self.payload = payload
        self.saves += 1
        self.saved.set()

    async def close(self) -> None:
        self.closed = True


class RecordingHook:
    def __init__(self) -> None:
        self.calls: list[tuple[str, BaseException]] = []

    def __call__(self, operation: str, error: BaseException) -> None:
        self.calls.append((operation, error))


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache("test", default_ttl=60, clock=clock)


# ============================================================================
# Basic Operation Tests
# ============================================================================


class TestTTLCacheOperations:
    """Tests for get/set/has/delete/clear."""

    def test_set_then_get(self, cache: TTLCache):
        cache.set("isbndb:book:1", {"title": "x"})
        assert cache.get("isbndb:book:1") == {"title": "x"}

    def test_missing_key_returns_default(self, cache: TTLCache):
        assert cache.get("nope") is None
        assert cache.get("nope", "fallback") == "fallback"

    def test_entry_live_at_exact_ttl(self, cache: TTLCache, clock):
        """An entry expires only once its age exceeds the TTL."""
        cache.set("k", 1, ttl_seconds=10)
        clock.advance(10)
        assert cache.get("k") == 1

    def test_expired_entry_is_evicted_on_read(self, cache: TTLCache, clock):
        cache.set("k", 1, ttl_seconds=10)
        clock.advance(10.5)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_default_ttl_applies(self, cache: TTLCache, clock):
        cache.set("k", 1)
        clock.advance(61)
        assert cache.get("k") is None

    def test_has_does_not_count_as_read(self, cache: TTLCache):
        cache.set("k", 1)
        assert cache.has("k")
        assert not cache.has("other")
        assert cache.stats().total_requests == 0

    def test_has_false_for_expired(self, cache: TTLCache, clock):
        cache.set("k", 1, ttl_seconds=1)
        clock.advance(2)
        assert not cache.has("k")

    def test_delete(self, cache: TTLCache):
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_clear_resets_entries_and_counters(self, cache: TTLCache):
        cache.set("k", 1)
        cache.get("k")
        cache.get("missing")
        cache.clear()
        stats = cache.stats()
        assert stats.size == 0
        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.total_requests == 0

    def test_overwrite_resets_age(self, cache: TTLCache, clock):
        cache.set("k", 1, ttl_seconds=10)
        clock.advance(8)
        cache.set("k", 2, ttl_seconds=10)
        clock.advance(8)
        assert cache.get("k") == 2

    def test_sweep_removes_only_expired(self, cache: TTLCache, clock):
        cache.set("short", 1, ttl_seconds=5)
        cache.set("long", 2, ttl_seconds=500)
        clock.advance(10)
        assert cache.sweep() == 1
        assert cache.has("long")

    def test_keys_are_normalized(self, cache: TTLCache):
        """Title/author keys differing only by articles and case share an entry."""
        cache.set("title:The Hobbit|author:J. R. R. Tolkien", "hobbit")
        assert cache.get("title:hobbit|author:j.r.r. tolkien") == "hobbit"


# ============================================================================
# Statistics Tests
# ============================================================================


class TestTTLCacheStats:
    """Tests for hit/miss counters and analytics."""

    def test_hit_rate(self, cache: TTLCache):
        cache.set("k", 1)
        cache.get("k")
        cache.get("k")
        cache.get("k")
        cache.get("missing")
        stats = cache.stats()
        assert stats.hits == 3
        assert stats.misses == 1
        assert stats.total_requests == 4
        assert stats.hit_rate == 0.75

    def test_hit_rate_zero_without_requests(self, cache: TTLCache):
        assert cache.stats().hit_rate == 0.0

    def test_expired_read_counts_as_miss(self, cache: TTLCache, clock):
        cache.set("k", 1, ttl_seconds=1)
        clock.advance(5)
        cache.get("k")
        assert cache.stats().misses == 1

    def test_hot_keys_ordered_by_hits(self, cache: TTLCache, clock):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        for _ in range(3):
            cache.get("b")
        cache.get("a")

        analytics = cache.analytics(limit=2)
        assert [h.key for h in analytics.hot_keys] == ["b", "a"]
        assert analytics.hot_keys[0].hit_count == 3
        assert analytics.hot_keys[0].last_access is not None
        assert analytics.average_hits_per_key == pytest.approx(4 / 3)

    def test_combine_analytics(self):
        first = CacheAnalytics(
            size=2,
            hits=3,
            misses=1,
            total_requests=4,
            hit_rate=0.75,
            hot_keys=[HotKey(key="a", hit_count=3)],
            average_hits_per_key=1.5,
        )
        second = CacheAnalytics(
            size=1,
            hits=1,
            misses=3,
            total_requests=4,
            hit_rate=0.25,
            hot_keys=[HotKey(key="b", hit_count=1), HotKey(key="c", hit_count=5)],
            average_hits_per_key=1.0,
        )
        combined = combine_analytics([first, second], limit=2)
        assert combined.size == 3
        assert combined.total_requests == 8
        assert combined.hit_rate == 0.5
        assert [h.key for h in combined.hot_keys] == ["c", "a"]
        assert combined.average_hits_per_key == pytest.approx(4 / 3)

    def test_combine_nothing(self):
        assert combine_analytics([]).hit_rate == 0.0


# ============================================================================
# Persistence Tests
# ============================================================================


class TestTTLCachePersistence:
    """Tests for snapshots, restore and the background flusher."""

    async def test_file_round_trip(self, tmp_path, clock):
        path = tmp_path / "snap" / "cache.json"
        cache = TTLCache("test", clock=clock, snapshot_store=FileSnapshotStore(path))
        cache.set("k", {"records": []})
        cache.get("k")
        assert await cache.flush() is True
        assert path.exists()

        restored = TTLCache("test", clock=clock, snapshot_store=FileSnapshotStore(path))
        assert await restored.restore() == 1
        assert restored.get("k") == {"records": []}
        assert restored.stats().hits == 2
        assert restored.stats().restored_at is not None

    async def test_no_temp_files_left_behind(self, tmp_path, clock):
        path = tmp_path / "cache.json"
        cache = TTLCache("test", clock=clock, snapshot_store=FileSnapshotStore(path))
        cache.set("k", 1)
        await cache.flush()
        assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]

    async def test_restore_drops_expired_entries(self, clock):
        store = MemorySnapshotStore()
        cache = TTLCache("test", clock=clock, snapshot_store=store)
        cache.set("short", 1, ttl_seconds=5)
        cache.set("long", 2, ttl_seconds=500)
        await cache.flush()

        clock.advance(10)
        restored = TTLCache("test", clock=clock, snapshot_store=store)
        assert await restored.restore() == 1
        assert restored.has("long")
        assert not restored.has("short")

    async def test_missing_snapshot_is_cold_start(self, tmp_path, clock):
        hook = RecordingHook()
        cache = TTLCache(
            "test",
            clock=clock,
            snapshot_store=FileSnapshotStore(tmp_path / "absent.json"),
            error_hook=hook,
        )
        assert await cache.restore() == 0
        assert hook.calls == []

    async def test_corrupt_snapshot_reported_to_hook(self, tmp_path, clock):
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        hook = RecordingHook()
        cache = TTLCache(
            "test", clock=clock, snapshot_store=FileSnapshotStore(path), error_hook=hook
        )

        assert await cache.restore() == 0
        assert len(cache) == 0
        assert hook.calls[0][0] == "restore"

    async def test_malformed_payload_reported_to_hook(self, clock):
        hook = RecordingHook()
        store = MemorySnapshotStore(payload={"entries": [{"key": "k"}]})
        cache = TTLCache("test", clock=clock, snapshot_store=store, error_hook=hook)

        assert await cache.restore() == 0
        assert hook.calls[0][0] == "restore"

    async def test_flush_failure_reported_to_hook(self, clock):
        hook = RecordingHook()
        store = MemorySnapshotStore(fail_save=True)
        cache = TTLCache("test", clock=clock, snapshot_store=store, error_hook=hook)
        cache.set("k", 1)

        assert await cache.flush() is False
        assert hook.calls[0][0] == "flush"
        assert isinstance(hook.calls[0][1], OSError)
        # Foreground operations keep working.
        assert cache.get("k") == 1

    async def test_flush_without_store(self, cache: TTLCache):
        assert await cache.flush() is False

    async def test_background_flush_after_n_sets(self, clock):
        store = MemorySnapshotStore()
        cache = TTLCache(
            "test",
            clock=clock,
            snapshot_store=store,
            persist_every_sets=2,
            flush_interval=3600,
        )
        await cache.start()
        try:
            cache.set("a", 1)
            cache.set("b", 2)
            await asyncio.wait_for(store.saved.wait(), timeout=1)
            assert store.payload is not None
            assert {e["key"] for e in store.payload["entries"]} == {"a", "b"}
        finally:
            await cache.close()

    async def test_close_flushes_pending_writes(self, clock):
        store = MemorySnapshotStore()
        cache = TTLCache(
            "test", clock=clock, snapshot_store=store, persist_every_sets=100
        )
        await cache.start()
        cache.set("a", 1)
        await cache.close()

        assert store.saves == 1
        assert store.closed is True

    async def test_close_without_changes_skips_flush(self, clock):
        store = MemorySnapshotStore()
        cache = TTLCache("test", clock=clock, snapshot_store=store)
        await cache.start()
        await cache.close()
        assert store.saves == 0

    async def test_snapshot_is_json_serializable(self, clock):
        store = MemorySnapshotStore()
        cache = TTLCache("test", clock=clock, snapshot_store=store)
        cache.set("k", {"records": [{"title": "x"}], "total_items": 1})
        await cache.flush()
        assert json.loads(json.dumps(store.payload))["name"] == "test"
