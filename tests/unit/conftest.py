"""Shared fixtures and fakes for unit tests."""

from __future__ import annotations

import fnmatch
import typing as t
from unittest.mock import Mock

import pytest

from anime_cache.storage.kv import KeyValueMedium, KeyValueStorage, MemoryMedium


class FakeClock:
    """Manually advanced clock; starts at a realistic epoch timestamp."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Just enough of the redis-py client surface for RedisMedium."""

    def __init__(self, decode_responses: bool = True) -> None:
        self.data: t.Dict[str, t.Any] = {}
        self._decode = decode_responses
        self.scan_patterns: t.List[str] = []

    def scan_iter(self, match: str = "*", count: int = 10) -> t.Iterator[t.Any]:
        self.scan_patterns.append(match)
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key if self._decode else key.encode()

    def get(self, key: str) -> t.Any:
        value = self.data.get(key)
        if value is None or self._decode:
            return value
        return value.encode()

    def set(self, key: str, value: str) -> bool:
        self.data[key] = value
        return True

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    def ping(self) -> bool:
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def medium() -> MemoryMedium:
    return MemoryMedium()


@pytest.fixture
def kv_storage(medium: MemoryMedium) -> KeyValueStorage:
    return KeyValueStorage(medium)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def failing_medium() -> Mock:
    """Medium whose every operation raises, like an unreachable backend."""
    medium = Mock(spec=KeyValueMedium)
    medium.keys.side_effect = ConnectionError("backend unavailable")
    medium.get.side_effect = ConnectionError("backend unavailable")
    medium.set.side_effect = ConnectionError("backend unavailable")
    medium.remove.side_effect = ConnectionError("backend unavailable")
    return medium
