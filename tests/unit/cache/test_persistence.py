"""Unit tests for TTLCache persistence through a storage adapter."""

import asyncio
import json
import logging
import time
from unittest.mock import Mock

import pytest

from anime_cache.cache.ttl_cache import TTLCache
from anime_cache.monitoring.metrics import cache_storage_errors_total
from anime_cache.storage.base import NullStorage
from anime_cache.storage.kv import KeyValueStorage, MemoryMedium
from anime_cache.utils.resilience import CircuitBreaker, CircuitBreakerConfig, CircuitState


class SlowMedium(MemoryMedium):
    """In-memory medium that blocks like a remote store on every write."""

    blocking = True

    def __init__(self, delay: float = 0.2) -> None:
        super().__init__()
        self.delay = delay

    def set(self, key: str, value: str) -> None:
        time.sleep(self.delay)
        super().set(key, value)

    def remove(self, key: str) -> None:
        time.sleep(self.delay)
        super().remove(key)


class TestPersistence:
    """Test write-through persistence and restore on construction."""

    def test_round_trip_within_ttl(self, medium, clock):
        """Test a rebuilt cache restores entries that are still valid."""
        first = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)
        first.set("p", 42, ttl_seconds=10)

        clock.advance(5)
        second = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)

        assert second.get("p") == 42

    def test_round_trip_after_ttl(self, medium, clock):
        """Test expired persisted entries are discarded on load."""
        first = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)
        first.set("p", 42, ttl_seconds=10)

        clock.advance(11)
        second = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)

        assert second.get("p") is None
        assert len(second) == 0
        # stale record purged from the medium too
        assert medium.get("cache_anime_p") is None

    def test_persisted_record_layout(self, medium, clock):
        """Test the stored JSON document under prefix + key."""
        cache = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)
        cache.set("21", {"title": "One Piece"}, ttl_seconds=60, tags=["studio:toei", "genre:action"])

        record = json.loads(medium.get("cache_anime_21"))
        assert record == {
            "data": {"title": "One Piece"},
            "created_at": clock.now,
            "ttl": 60.0,
            "access_count": 0,
            "last_accessed_at": clock.now,
            "tags": ["genre:action", "studio:toei"],
        }

    def test_restored_tags_are_indexed(self, medium, clock):
        """Test tag invalidation works on restored entries."""
        first = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)
        first.set("a", 1, tags=["genre:action"])
        first.set("b", 2, tags=["genre:drama"])

        second = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)

        assert second.invalidate_by_tag("genre:action") == 1
        assert second.get("b") == 2
        assert medium.get("cache_anime_a") is None

    def test_custom_key_prefix(self, medium):
        """Test an explicit prefix is used for storage keys."""
        cache = TTLCache("anime", storage=KeyValueStorage(medium), key_prefix="v2:anime:")
        cache.set("1", "x")

        assert cache.key_prefix == "v2:anime:"
        assert medium.keys("v2:anime:") == ["v2:anime:1"]

    def test_delete_removes_persisted_copy(self, medium):
        """Test delete drops the stored record."""
        cache = TTLCache("anime", storage=KeyValueStorage(medium))
        cache.set("k", "v")
        assert medium.get("cache_anime_k") is not None

        cache.delete("k")
        assert medium.get("cache_anime_k") is None

    def test_eviction_removes_persisted_copy(self, medium):
        """Test LRU eviction drops the evicted record."""
        cache = TTLCache("anime", max_size=1, storage=KeyValueStorage(medium))
        cache.set("a", 1)
        cache.set("b", 2)

        assert medium.keys("cache_anime_") == ["cache_anime_b"]

    def test_clear_only_touches_own_prefix(self, medium):
        """Test clear purges this cache's records and no others."""
        anime = TTLCache("anime", storage=KeyValueStorage(medium))
        episodes = TTLCache("episodes", storage=KeyValueStorage(medium))
        anime.set("1", "a")
        anime.set("2", "b")
        episodes.set("1", ["ep1"])

        anime.clear()

        assert medium.keys("cache_anime_") == []
        assert medium.keys("cache_episodes_") == ["cache_episodes_1"]

    def test_malformed_records_are_skipped(self, medium, clock):
        """Test corrupt records never prevent loading the valid ones."""
        good = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)
        good.set("ok", "fine")
        medium.set("cache_anime_garbage", "{not json")
        medium.set("cache_anime_partial", json.dumps({"data": 1}))
        medium.set("cache_anime_list", json.dumps([1, 2, 3]))
        medium.set("cache_anime_badtags", json.dumps({
            "data": 1, "created_at": clock.now, "ttl": 60, "access_count": 0,
            "last_accessed_at": clock.now, "tags": "oops",
        }))

        restored = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)

        assert restored.keys() == ["ok"]

    def test_recency_restored_from_last_access(self, medium, clock):
        """Test restore orders entries by last access and respects max_size."""
        first = TTLCache("anime", storage=KeyValueStorage(medium), clock=clock)
        first.set("a", 1)
        clock.advance(1)
        first.set("b", 2)
        clock.advance(1)
        first.set("a", 1)

        restored = TTLCache("anime", max_size=1, storage=KeyValueStorage(medium), clock=clock)

        assert restored.keys() == ["a"]
        assert medium.get("cache_anime_b") is None

    def test_null_storage_persists_nothing(self, medium):
        """Test the in-memory strategy never touches a medium."""
        cache = TTLCache("anime", storage=NullStorage())
        cache.set("k", "v")

        assert cache.storage.persistent is False
        assert len(medium) == 0
        assert cache.get("k") == "v"


class TestStorageFailures:
    """Test that storage problems never reach callers."""

    def test_unavailable_medium_degrades_to_memory(self, failing_medium, caplog):
        """Test every operation keeps working when the medium is down."""
        before = cache_storage_errors_total.get(cache="broken", op="save")
        with caplog.at_level(logging.WARNING, logger="anime_cache.cache.ttl_cache"):
            cache = TTLCache("broken", storage=KeyValueStorage(failing_medium))
            cache.set("k", "v")
            assert cache.get("k") == "v"
            assert cache.delete("k") is True
            cache.set("k2", "v2")
            cache.clear()

        assert len(cache) == 0
        assert "failed to load persisted entries" in caplog.text
        assert "storage save failed" in caplog.text
        assert cache_storage_errors_total.get(cache="broken", op="save") == before + 2

    def test_circuit_opens_after_repeated_failures(self, failing_medium):
        """Test persistence is skipped once the breaker opens."""
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=2, reset_timeout_seconds=60))
        cache = TTLCache("broken", storage=KeyValueStorage(failing_medium), breaker=breaker)

        for i in range(5):
            cache.set(f"k{i}", i)

        assert failing_medium.set.call_count == 2
        assert breaker.state == CircuitState.OPEN
        assert cache.get("k4") == 4

    def test_unserializable_value_stays_in_memory(self, medium):
        """Test a value JSON cannot encode is cached but not persisted."""
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=1))
        cache = TTLCache("anime", storage=KeyValueStorage(medium), breaker=breaker)
        value = object()

        cache.set("obj", value)

        assert cache.get("obj") is value
        assert medium.get("cache_anime_obj") is None
        # a bad value is not a medium failure
        assert breaker.state == CircuitState.CLOSED

    def test_load_failure_from_adapter(self):
        """Test an adapter that raises while loading leaves an empty cache."""
        storage = Mock(spec=KeyValueStorage)
        storage.persistent = True
        storage.load_all.side_effect = OSError("disk gone")

        cache = TTLCache("anime", storage=storage)

        assert len(cache) == 0
        cache.set("k", "v")
        storage.save.assert_called_once()


@pytest.mark.asyncio
class TestBackgroundWrites:
    """Test that writes to a blocking medium stay off the event loop."""

    async def test_slow_medium_does_not_stall_the_loop(self):
        """Test other coroutines keep running while a miss is persisted."""
        medium = SlowMedium(delay=0.2)
        cache = TTLCache("anime", storage=KeyValueStorage(medium))
        gaps = []

        async def ticker():
            last = time.perf_counter()
            for _ in range(20):
                await asyncio.sleep(0.01)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        ticking = asyncio.create_task(ticker())
        assert await cache.get_or_set("21", lambda: {"title": "One Piece"}) == {"title": "One Piece"}
        await ticking

        assert max(gaps) < 0.15
        await cache.flush()
        assert json.loads(medium.get("cache_anime_21"))["data"] == {"title": "One Piece"}
        await cache.close()

    async def test_writes_apply_in_order(self):
        """Test a set followed by a delete leaves no record behind."""
        medium = SlowMedium(delay=0.01)
        cache = TTLCache("anime", storage=KeyValueStorage(medium))

        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        cache.set("b", 3)
        # queued, not yet applied
        assert medium.get("cache_anime_b") is None

        await cache.flush()

        assert medium.keys("cache_anime_") == ["cache_anime_b"]
        assert json.loads(medium.get("cache_anime_b"))["data"] == 3
        await cache.close()

    async def test_close_drains_pending_writes(self):
        medium = SlowMedium(delay=0.01)
        cache = TTLCache("anime", storage=KeyValueStorage(medium))
        for i in range(3):
            cache.set(str(i), i)

        await cache.close()

        assert sorted(medium.keys("cache_anime_")) == ["cache_anime_0", "cache_anime_1", "cache_anime_2"]

    async def test_background_failures_are_logged_and_counted(self, failing_medium, caplog):
        """Test a failing write in the background never reaches the caller."""
        before = cache_storage_errors_total.get(cache="broken-async", op="save")
        cache = TTLCache("broken-async", storage=KeyValueStorage(failing_medium))

        with caplog.at_level(logging.WARNING, logger="anime_cache.cache.ttl_cache"):
            assert await cache.get_or_set("k", lambda: "v") == "v"
            await cache.flush()

        assert cache.get("k") == "v"
        assert "storage save failed" in caplog.text
        assert cache_storage_errors_total.get(cache="broken-async", op="save") == before + 1
        await cache.close()

    async def test_memory_medium_writes_inline(self, medium):
        """Test a non-blocking medium is written before the call returns."""
        cache = TTLCache("search", storage=KeyValueStorage(medium))

        await cache.get_or_set("q", lambda: [1])

        assert medium.get("cache_search_q") is not None
        await cache.close()
