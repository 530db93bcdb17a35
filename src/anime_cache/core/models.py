from __future__ import annotations

import enum
import time
import typing as t
from dataclasses import dataclass, field


class StorageKind(str, enum.Enum):
    MEMORY = "memory"
    SESSION = "session"
    PERSISTENT = "persistent"


_RECORD_FIELDS = ("data", "created_at", "ttl", "access_count", "last_accessed_at", "tags")


@dataclass
class CacheEntry:
    data: t.Any
    ttl: float
    created_at: float = field(default_factory=lambda: time.time())
    access_count: int = 0
    last_accessed_at: float = field(default_factory=lambda: time.time())
    tags: t.FrozenSet[str] = frozenset()

    def is_valid(self, now: float) -> bool:
        return now - self.created_at < self.ttl

    def age(self, now: float) -> float:
        return now - self.created_at

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed_at = now

    def to_dict(self) -> t.Dict[str, t.Any]:
        return {
            "data": self.data,
            "created_at": self.created_at,
            "ttl": self.ttl,
            "access_count": self.access_count,
            "last_accessed_at": self.last_accessed_at,
            "tags": sorted(self.tags),
        }

    @classmethod
    def from_dict(cls, record: t.Mapping[str, t.Any]) -> "CacheEntry":
        """Rebuild an entry from its persisted record.

        Raises KeyError, TypeError or ValueError when the record does not have
        the expected layout; callers treat all three as "malformed".
        """
        if not isinstance(record, t.Mapping):
            raise TypeError(f"cache record must be a mapping, got {type(record).__name__}")
        missing = [name for name in _RECORD_FIELDS if name not in record]
        if missing:
            raise KeyError(f"cache record missing fields: {', '.join(missing)}")

        created_at = _number(record["created_at"], "created_at")
        ttl = _number(record["ttl"], "ttl")
        last_accessed_at = _number(record["last_accessed_at"], "last_accessed_at")
        access_count = record["access_count"]
        if isinstance(access_count, bool) or not isinstance(access_count, int) or access_count < 0:
            raise ValueError(f"invalid access_count: {access_count!r}")
        tags = record["tags"]
        if isinstance(tags, str) or not isinstance(tags, (list, tuple)):
            raise TypeError("tags must be a list of strings")
        if not all(isinstance(tag, str) for tag in tags):
            raise TypeError("tags must be a list of strings")

        return cls(
            data=record["data"],
            ttl=ttl,
            created_at=created_at,
            access_count=access_count,
            last_accessed_at=last_accessed_at,
            tags=frozenset(tags),
        )


def _number(value: t.Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    return float(value)


@dataclass
class CacheStats:
    size: int
    max_size: int
    hit_rate: float
    average_age: float
    total_accesses: int
    memory_usage: int
    hits: int = 0
    misses: int = 0
