from __future__ import annotations

import json
import logging
import typing as t
from abc import ABC, abstractmethod

from ..core.models import CacheEntry
from .base import StorageAdapter

_logger = logging.getLogger(__name__)


class KeyValueMedium(ABC):
    """A string key/value store that can enumerate keys by prefix."""

    blocking: bool = True

    @abstractmethod
    def keys(self, prefix: str) -> t.List[str]:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> t.Optional[str]:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def remove(self, key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class MemoryMedium(KeyValueMedium):
    """Process-scoped medium.

    Outlives any single cache built on it but not the process, which makes it
    the session-scoped store: a cache rebuilt on the same medium gets its
    entries back.
    """

    blocking = False

    def __init__(self) -> None:
        self._data: t.Dict[str, str] = {}

    def keys(self, prefix: str) -> t.List[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def get(self, key: str) -> t.Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class KeyValueStorage(StorageAdapter):
    """Stores each entry as a JSON document under its storage key."""

    def __init__(self, medium: KeyValueMedium) -> None:
        self._medium = medium

    @property
    def medium(self) -> KeyValueMedium:
        return self._medium

    @property
    def blocking(self) -> bool:  # type: ignore[override]
        return bool(self._medium.blocking)

    def load_all(self, prefix: str) -> t.Iterator[t.Tuple[str, CacheEntry]]:
        for storage_key in self._medium.keys(prefix):
            raw = self._medium.get(storage_key)
            if raw is None:
                continue
            try:
                entry = CacheEntry.from_dict(json.loads(raw))
            except (ValueError, TypeError, KeyError) as exc:
                _logger.debug("Skipping malformed cache record %s: %s", storage_key, exc)
                continue
            yield storage_key[len(prefix):], entry

    def save(self, storage_key: str, entry: CacheEntry) -> None:
        self._medium.set(storage_key, json.dumps(entry.to_dict()))

    def remove(self, storage_key: str) -> None:
        self._medium.remove(storage_key)

    def clear(self, prefix: str) -> None:
        # snapshot first; removing while a medium iterates is not safe for all media
        for storage_key in list(self._medium.keys(prefix)):
            self._medium.remove(storage_key)
