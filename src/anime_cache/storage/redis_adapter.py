from __future__ import annotations

import typing as t

import redis

from .kv import KeyValueMedium

_GLOB_SPECIAL = "\\*?[]"


def _escape_glob(text: str) -> str:
    return "".join("\\" + ch if ch in _GLOB_SPECIAL else ch for ch in text)


class RedisMedium(KeyValueMedium):
    """Redis-backed medium for the persistent (cross-session) store.

    - Values are stored as plain strings at their storage key
    - Prefix enumeration uses `SCAN MATCH {prefix}*` with the prefix glob-escaped
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        client: t.Any | None = None,
        scan_count: int = 500,
    ) -> None:
        self._url = url
        self._scan_count = scan_count
        self._redis = client if client is not None else redis.Redis.from_url(url, decode_responses=True)

    @classmethod
    def from_url(cls, url: str) -> "RedisMedium":
        return cls(url)

    @staticmethod
    def _text(value: t.Any) -> str:
        return value.decode() if isinstance(value, (bytes, bytearray)) else str(value)

    def keys(self, prefix: str) -> t.List[str]:
        pattern = _escape_glob(prefix) + "*"
        return [self._text(key) for key in self._redis.scan_iter(match=pattern, count=self._scan_count)]

    def get(self, key: str) -> t.Optional[str]:
        raw = self._redis.get(key)
        if raw is None:
            return None
        return self._text(raw)

    def set(self, key: str, value: str) -> None:
        self._redis.set(key, value)

    def remove(self, key: str) -> None:
        self._redis.delete(key)

    def is_healthy(self) -> bool:
        try:
            return bool(self._redis.ping())
        except Exception:
            return False

    def close(self) -> None:  # pragma: no cover - convenience
        try:
            self._redis.close()
        except Exception:
            pass
