from __future__ import annotations

import logging
import time
import typing as t

from ..cache.ttl_cache import TTLCache
from ..storage.factory import create_storage
from ..storage.kv import KeyValueMedium, MemoryMedium
from ..storage.redis_adapter import RedisMedium
from ..utils.config import RegistryConfig
from .models import CacheStats

_logger = logging.getLogger(__name__)


class DomainCacheRegistry:
    """The per-domain caches of one application instance.

    Built once at startup and handed to collaborators explicitly; there is no
    module-level instance. Tests build their own with injected media.
    """

    def __init__(self, caches: t.Mapping[str, TTLCache]) -> None:
        self._caches: t.Dict[str, TTLCache] = dict(caches)

    @classmethod
    def from_config(
        cls,
        config: t.Optional[RegistryConfig] = None,
        *,
        session_medium: t.Optional[KeyValueMedium] = None,
        persistent_medium: t.Optional[KeyValueMedium] = None,
        clock: t.Callable[[], float] = time.time,
    ) -> "DomainCacheRegistry":
        config = config or RegistryConfig()
        if session_medium is None:
            session_medium = MemoryMedium()
        if persistent_medium is None and config.storage.redis_url:
            persistent_medium = RedisMedium.from_url(config.storage.redis_url)

        caches: t.Dict[str, TTLCache] = {}
        for name, domain in config.domains.items():
            storage = create_storage(
                domain.storage,
                session_medium=session_medium,
                persistent_medium=persistent_medium,
            )
            caches[name] = TTLCache(
                name,
                max_size=domain.max_size,
                ttl_seconds=domain.ttl_seconds,
                storage=storage,
                key_prefix=f"{config.storage.key_prefix}{name}_",
                cleanup_interval_seconds=domain.cleanup_interval_seconds,
                single_flight=domain.single_flight,
                clock=clock,
            )
        _logger.info("Built domain caches: %s", ", ".join(sorted(caches)))
        return cls(caches)

    def get(self, name: str) -> TTLCache:
        try:
            return self._caches[name]
        except KeyError:
            raise KeyError(f"unknown cache domain {name!r}; known: {', '.join(sorted(self._caches))}") from None

    __getitem__ = get

    def __iter__(self) -> t.Iterator[str]:
        return iter(self._caches)

    def __len__(self) -> int:
        return len(self._caches)

    def names(self) -> t.List[str]:
        return list(self._caches)

    @property
    def anime(self) -> TTLCache:
        return self.get("anime")

    @property
    def episodes(self) -> TTLCache:
        return self.get("episodes")

    @property
    def search(self) -> TTLCache:
        return self.get("search")

    @property
    def images(self) -> TTLCache:
        return self.get("images")

    def invalidate_tag(self, tag: str) -> int:
        return sum(cache.invalidate_by_tag(tag) for cache in self._caches.values())

    def stats(self) -> t.Dict[str, CacheStats]:
        return {name: cache.get_stats() for name, cache in self._caches.items()}

    def start_cleanup(self) -> None:
        for cache in self._caches.values():
            cache.start_cleanup()

    async def close(self) -> None:
        for cache in self._caches.values():
            await cache.close()
