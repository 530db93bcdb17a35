from __future__ import annotations

import typing as t
from abc import ABC, abstractmethod

from ..core.models import CacheEntry


class StorageAdapter(ABC):
    """Persistence strategy behind a TTLCache.

    Keys passed to `save`/`remove` are full storage keys (prefix included);
    `load_all` and `clear` work on every key under a prefix, so one adapter
    can back several caches with distinct prefixes.

    `blocking` adapters do network or disk I/O; caches running inside an
    event loop hand their writes to a worker thread.
    """

    persistent: bool = True
    blocking: bool = True

    @abstractmethod
    def load_all(self, prefix: str) -> t.Iterator[t.Tuple[str, CacheEntry]]:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def save(self, storage_key: str, entry: CacheEntry) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def remove(self, storage_key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def clear(self, prefix: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class NullStorage(StorageAdapter):
    """Pure in-memory mode: nothing is persisted or restored."""

    persistent = False
    blocking = False

    def load_all(self, prefix: str) -> t.Iterator[t.Tuple[str, CacheEntry]]:
        return iter(())

    def save(self, storage_key: str, entry: CacheEntry) -> None:
        return None

    def remove(self, storage_key: str) -> None:
        return None

    def clear(self, prefix: str) -> None:
        return None
