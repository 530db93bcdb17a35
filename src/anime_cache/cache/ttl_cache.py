from __future__ import annotations

import asyncio
import contextlib
import functools
import inspect
import json
import logging
import time
import typing as t
from collections import OrderedDict, deque

from ..core.models import CacheEntry, CacheStats
from ..monitoring.metrics import (
    cache_evictions_total,
    cache_factory_latency_seconds,
    cache_requests_total,
    cache_storage_errors_total,
)
from ..storage.base import NullStorage, StorageAdapter
from ..utils.resilience import CircuitBreaker, CircuitOpenError

_logger = logging.getLogger(__name__)

V = t.TypeVar("V")
Factory = t.Callable[[], t.Union[V, t.Awaitable[V]]]

_MISSING: t.Any = object()


def _running_loop() -> t.Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class TTLCache(t.Generic[V]):
    """LRU + TTL cache with tag invalidation and best-effort persistence.

    The entry table is an OrderedDict whose order is the recency order: the
    head is the least recently used key, `get` and `set` move a key to the
    tail. A tag index maps each tag to the keys carrying it.

    Storage failures are logged and never raised; the in-memory table stays
    authoritative. All mutations are synchronous, so the cache is safe to
    share between coroutines of one event loop without locks.

    Writes to a blocking adapter (Redis) made while an event loop runs are
    queued and applied in order by a background writer on a worker thread;
    `flush()` waits for them and `close()` drains them.
    """

    def __init__(
        self,
        name: str,
        *,
        max_size: int = 1000,
        ttl_seconds: float = 300.0,
        storage: t.Optional[StorageAdapter] = None,
        key_prefix: t.Optional[str] = None,
        cleanup_interval_seconds: float = 60.0,
        single_flight: bool = False,
        breaker: t.Optional[CircuitBreaker] = None,
        clock: t.Callable[[], float] = time.time,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if cleanup_interval_seconds <= 0:
            raise ValueError(f"cleanup_interval_seconds must be positive, got {cleanup_interval_seconds}")
        self.name = name
        self._max_size = max_size
        self._ttl = float(ttl_seconds)
        self._storage = storage if storage is not None else NullStorage()
        self._prefix = key_prefix if key_prefix is not None else f"cache_{name}_"
        self._cleanup_interval = cleanup_interval_seconds
        self._single_flight = single_flight
        self._breaker = breaker or CircuitBreaker()
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._tag_index: t.Dict[str, t.Set[str]] = {}
        self._in_flight: t.Dict[str, asyncio.Future] = {}
        self._hits = 0
        self._misses = 0
        self._cleanup_task: t.Optional[asyncio.Task] = None
        self._closed = False
        self._writes: t.Deque[t.Tuple[str, t.Callable[[], None]]] = deque()
        self._writer: t.Optional[asyncio.Task] = None

        if self._storage.persistent:
            self._load()

        # without a loop the sweep starts on first use inside one
        self._ensure_cleanup()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl(self) -> float:
        return self._ttl

    @property
    def key_prefix(self) -> str:
        return self._prefix

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    @property
    def single_flight(self) -> bool:
        return self._single_flight

    # -- internal bookkeeping ---------------------------------------------

    def _insert(self, key: str, entry: CacheEntry) -> None:
        previous = self._entries.get(key)
        if previous is not None:
            self._unindex(key, previous.tags)
        self._entries[key] = entry
        self._entries.move_to_end(key)
        for tag in entry.tags:
            self._tag_index.setdefault(tag, set()).add(key)

    def _unindex(self, key: str, tags: t.Iterable[str]) -> None:
        for tag in tags:
            keys = self._tag_index.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tag_index[tag]

    def _discard(self, key: str) -> t.Optional[CacheEntry]:
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        self._unindex(key, entry.tags)
        storage_key = self._prefix + key
        self._storage_call("remove", lambda: self._storage.remove(storage_key))
        return entry

    def _evict_lru(self) -> None:
        lru_key = next(iter(self._entries))
        self._discard(lru_key)
        cache_evictions_total.inc(cache=self.name, reason="lru")
        _logger.debug("Cache %s: evicted least recently used key %s", self.name, lru_key)

    def _expire(self, key: str) -> None:
        if self._discard(key) is not None:
            cache_evictions_total.inc(cache=self.name, reason="expired")

    def _record_lookup(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1
        cache_requests_total.inc(cache=self.name, result="hit" if hit else "miss")

    def _storage_call(self, op: str, fn: t.Callable[[], None]) -> None:
        if not self._storage.persistent:
            return
        if self._storage.blocking:
            loop = _running_loop()
            if loop is not None:
                self._writes.append((op, fn))
                if self._writer is None or self._writer.done():
                    self._writer = loop.create_task(self._drain_writes(), name=f"cache-writer-{self.name}")
                return
            # no loop left to run the writer; apply leftovers first to keep order
            while self._writes:
                self._run_storage(*self._writes.popleft())
        self._run_storage(op, fn)

    async def _drain_writes(self) -> None:
        while self._writes:
            op, fn = self._writes.popleft()
            await asyncio.to_thread(self._run_storage, op, fn)

    def _run_storage(self, op: str, fn: t.Callable[[], None]) -> None:
        try:
            # serialization errors are about the value, not the medium
            self._breaker.call(fn, ignore=(TypeError, ValueError))
        except CircuitOpenError:
            _logger.debug("Cache %s: storage circuit open, skipping %s", self.name, op)
        except Exception:
            cache_storage_errors_total.inc(cache=self.name, op=op)
            _logger.warning("Cache %s: storage %s failed", self.name, op, exc_info=True)

    def _load(self) -> None:
        now = self._clock()
        admitted: t.List[t.Tuple[str, CacheEntry]] = []
        stale: t.List[str] = []
        try:
            for key, entry in self._storage.load_all(self._prefix):
                if entry.is_valid(now):
                    admitted.append((key, entry))
                else:
                    stale.append(key)
        except Exception:
            cache_storage_errors_total.inc(cache=self.name, op="load")
            _logger.warning("Cache %s: failed to load persisted entries", self.name, exc_info=True)
            return

        for key in stale:
            self._storage_call("remove", functools.partial(self._storage.remove, self._prefix + key))

        admitted.sort(key=lambda item: item[1].last_accessed_at)
        for key, entry in admitted:
            self._insert(key, entry)
        while len(self._entries) > self._max_size:
            self._evict_lru()

        if admitted or stale:
            _logger.info(
                "Cache %s: restored %d entries, discarded %d expired",
                self.name,
                len(self._entries),
                len(stale),
            )

    def _lookup(self, key: str) -> t.Any:
        entry = self._entries.get(key)
        if entry is None:
            self._record_lookup(False)
            return _MISSING
        now = self._clock()
        if not entry.is_valid(now):
            self._expire(key)
            self._record_lookup(False)
            return _MISSING
        entry.touch(now)
        self._entries.move_to_end(key)
        self._record_lookup(True)
        return entry.data

    # -- public API ------------------------------------------------------------

    def _resolve_ttl(self, ttl_seconds: t.Optional[float]) -> float:
        if ttl_seconds is None:
            return self._ttl
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        return float(ttl_seconds)

    def set(
        self,
        key: str,
        value: V,
        *,
        ttl_seconds: t.Optional[float] = None,
        tags: t.Optional[t.Iterable[str]] = None,
    ) -> None:
        ttl = self._resolve_ttl(ttl_seconds)
        self._ensure_cleanup()
        now = self._clock()
        if isinstance(tags, str):
            tags = (tags,)
        if key not in self._entries:
            while len(self._entries) >= self._max_size:
                self._evict_lru()

        entry = CacheEntry(
            data=value,
            ttl=ttl,
            created_at=now,
            access_count=0,
            last_accessed_at=now,
            tags=frozenset(tags or ()),
        )
        self._insert(key, entry)
        storage_key = self._prefix + key
        self._storage_call("save", lambda: self._storage.save(storage_key, entry))

    def get(self, key: str, default: t.Optional[V] = None) -> t.Optional[V]:
        value = self._lookup(key)
        if value is _MISSING:
            return default
        return value

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if not entry.is_valid(self._clock()):
            self._expire(key)
            return False
        return True

    __contains__ = has

    async def get_or_set(
        self,
        key: str,
        factory: Factory,
        *,
        ttl_seconds: t.Optional[float] = None,
        tags: t.Optional[t.Iterable[str]] = None,
    ) -> V:
        """Return the cached value for `key`, computing and storing it on a miss.

        `factory` may return a value or an awaitable. Its exceptions propagate
        and nothing is stored. Without single-flight, concurrent misses on the
        same key each call their own factory and the last `set` wins.

        With single-flight, waiters share the leading call's result or
        exception. If the leading caller is cancelled, one waiter takes over
        and runs its own factory.
        """
        self._resolve_ttl(ttl_seconds)
        self._ensure_cleanup()
        value = self._lookup(key)
        if value is not _MISSING:
            return value
        if not self._single_flight:
            return await self._fill(key, factory, ttl_seconds, tags)

        while True:
            pending = self._in_flight.get(key)
            if pending is None:
                return await self._lead(key, factory, ttl_seconds, tags)
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                _logger.debug("Cache %s: leading call for %s was cancelled, retrying", self.name, key)

    async def _lead(
        self,
        key: str,
        factory: Factory,
        ttl_seconds: t.Optional[float],
        tags: t.Optional[t.Iterable[str]],
    ) -> V:
        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await self._fill(key, factory, ttl_seconds, tags)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # mark retrieved so a waiter-less failure does not log "never retrieved"
            future.exception()
            raise
        else:
            future.set_result(value)
            return value
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    async def _fill(
        self,
        key: str,
        factory: Factory,
        ttl_seconds: t.Optional[float],
        tags: t.Optional[t.Iterable[str]],
    ) -> V:
        started = time.perf_counter()
        result = factory()
        if inspect.isawaitable(result):
            result = await result
        cache_factory_latency_seconds.observe(time.perf_counter() - started, cache=self.name)
        self.set(key, result, ttl_seconds=ttl_seconds, tags=tags)
        return result

    def delete(self, key: str) -> bool:
        return self._discard(key) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._tag_index.clear()
        self._storage_call("clear", lambda: self._storage.clear(self._prefix))

    def invalidate_by_tag(self, tag: str) -> int:
        keys = list(self._tag_index.get(tag, ()))
        for key in keys:
            self._discard(key)
        if keys:
            cache_evictions_total.inc(len(keys), cache=self.name, reason="tag")
            _logger.debug("Cache %s: invalidated %d entries tagged %s", self.name, len(keys), tag)
        return len(keys)

    def cleanup(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            self._expire(key)
        if expired:
            _logger.debug("Cache %s: cleanup removed %d expired entries", self.name, len(expired))
        return len(expired)

    def get_stats(self) -> CacheStats:
        now = self._clock()
        entries = list(self._entries.values())
        size = len(entries)
        lookups = self._hits + self._misses
        return CacheStats(
            size=size,
            max_size=self._max_size,
            hit_rate=self._hits / lookups if lookups else 0.0,
            average_age=sum(entry.age(now) for entry in entries) / size if size else 0.0,
            total_accesses=sum(entry.access_count for entry in entries),
            memory_usage=self._estimate_memory(),
            hits=self._hits,
            misses=self._misses,
        )

    def _estimate_memory(self) -> int:
        total = 0
        for key, entry in self._entries.items():
            total += len(key.encode("utf-8"))
            try:
                serialized = json.dumps(entry.to_dict(), default=repr)
            except ValueError:
                serialized = repr(entry)
            total += len(serialized.encode("utf-8"))
        return total

    def keys(self) -> t.List[str]:
        now = self._clock()
        return [key for key, entry in self._entries.items() if entry.is_valid(now)]

    def values(self) -> t.List[V]:
        now = self._clock()
        return [entry.data for entry in self._entries.values() if entry.is_valid(now)]

    def items(self) -> t.List[t.Tuple[str, V]]:
        now = self._clock()
        return [(key, entry.data) for key, entry in self._entries.items() if entry.is_valid(now)]

    def __len__(self) -> int:
        return len(self._entries)

    # -- periodic cleanup --------------------------------------------------------

    def start_cleanup(self) -> None:
        """Schedule the periodic cleanup sweep on the running event loop."""
        self._closed = False
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        loop = asyncio.get_running_loop()
        self._cleanup_task = loop.create_task(self._cleanup_loop(), name=f"cache-cleanup-{self.name}")

    def _ensure_cleanup(self) -> None:
        if self._closed:
            return
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        if _running_loop() is not None:
            self.start_cleanup()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._cleanup_interval)
            self.cleanup()

    async def flush(self) -> None:
        """Wait until queued storage writes have been applied."""
        while self._writer is not None and not self._writer.done():
            await asyncio.shield(self._writer)

    async def close(self) -> None:
        """Stop the cleanup sweep and drain pending storage writes."""
        self._closed = True
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.flush()
