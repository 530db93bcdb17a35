from __future__ import annotations

import inspect
import logging
import typing as t

from ..utils.resilience import RateLimiter
from .ttl_cache import Factory, TTLCache, V

_logger = logging.getLogger(__name__)


def create_cache_key(*parts: t.Union[str, int]) -> str:
    return ":".join(str(part) for part in parts)


class CacheKeys:
    """Key builders shared by the metadata and streaming lookups."""

    @staticmethod
    def trending() -> str:
        return create_cache_key("anime", "trending")

    @staticmethod
    def seasonal(season: str, year: int) -> str:
        return create_cache_key("anime", "seasonal", season.lower(), year)

    @staticmethod
    def anime_details(anime_id: t.Union[str, int]) -> str:
        return create_cache_key("anime", anime_id)

    @staticmethod
    def anime_episodes(anime_id: t.Union[str, int]) -> str:
        return create_cache_key("episodes", anime_id)

    @staticmethod
    def streaming(anime_id: t.Union[str, int], episode: t.Union[str, int]) -> str:
        return create_cache_key("stream", anime_id, episode)

    @staticmethod
    def search(query: str, page: int = 1) -> str:
        return create_cache_key("search", " ".join(query.lower().split()), page)


async def with_cache(
    cache: TTLCache[V],
    key: str,
    factory: Factory,
    *,
    ttl_seconds: t.Optional[float] = None,
    tags: t.Optional[t.Iterable[str]] = None,
) -> V:
    return await cache.get_or_set(key, factory, ttl_seconds=ttl_seconds, tags=tags)


async def cached_call(
    cache: TTLCache[V],
    key: str,
    factory: Factory,
    *,
    rate_limiter: t.Optional[RateLimiter] = None,
    rate_limit_key: t.Optional[str] = None,
    ttl_seconds: t.Optional[float] = None,
    tags: t.Optional[t.Iterable[str]] = None,
) -> V:
    """Cache-aside call to a rate-limited upstream.

    On a miss the rate limiter (if any) is charged under `rate_limit_key`
    (default: the cache key) before `factory` runs; a full window raises
    RateLimitExceeded and nothing is cached.
    """

    async def upstream() -> t.Any:
        if rate_limiter is not None:
            rate_limiter.acquire(rate_limit_key or key)
        _logger.debug("Cache miss for %s; calling upstream", key)
        result = factory()
        if inspect.isawaitable(result):
            result = await result
        return result

    return await cache.get_or_set(key, upstream, ttl_seconds=ttl_seconds, tags=tags)
