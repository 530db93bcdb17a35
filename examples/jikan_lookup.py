#!/usr/bin/env python3
"""Look up anime on the Jikan API through the domain caches.

Run twice within the TTL with --redis-url set: the second run is served from
Redis without touching the API.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import click
import httpx

from anime_cache import CacheKeys, DomainCacheRegistry, RateLimiter, RegistryConfig, cached_call

JIKAN_BASE = "https://api.jikan.moe/v4"


async def fetch_json(client: httpx.AsyncClient, path: str, **params: Any) -> Any:
    r = await client.get(f"{JIKAN_BASE}{path}", params=params or None)
    r.raise_for_status()
    return r.json()


async def run(anime_ids: tuple[int, ...], query: str | None, redis_url: str | None) -> None:
    config = RegistryConfig.from_dict({"storage": {"redis_url": redis_url}})
    caches = DomainCacheRegistry.from_config(config)
    # Jikan allows roughly a request per second; stay well under it
    limiter = RateLimiter(max_requests=30, window_seconds=60)

    async with httpx.AsyncClient(timeout=15.0, headers={"User-Agent": "anime-cache-example/0.1"}) as client:
        for anime_id in anime_ids:
            details = await cached_call(
                caches.anime,
                CacheKeys.anime_details(anime_id),
                lambda anime_id=anime_id: fetch_json(client, f"/anime/{anime_id}"),
                rate_limiter=limiter,
                rate_limit_key="jikan",
                tags=[f"anime:{anime_id}"],
            )
            print(f"{anime_id}: {details['data']['title']}")

            episodes = await cached_call(
                caches.episodes,
                CacheKeys.anime_episodes(anime_id),
                lambda anime_id=anime_id: fetch_json(client, f"/anime/{anime_id}/episodes"),
                rate_limiter=limiter,
                rate_limit_key="jikan",
                tags=[f"anime:{anime_id}"],
            )
            print(f"  episodes on first page: {len(episodes['data'])}")

        if query:
            results = await cached_call(
                caches.search,
                CacheKeys.search(query),
                lambda: fetch_json(client, "/anime", q=query, limit=5),
                rate_limiter=limiter,
                rate_limit_key="jikan",
            )
            for item in results["data"]:
                print(f"search: {item['mal_id']} {item['title']}")

    for name, stats in caches.stats().items():
        print(f"[{name}] size={stats.size}/{stats.max_size} hit_rate={stats.hit_rate:.2f} bytes={stats.memory_usage}")
    await caches.close()


@click.command()
@click.option("--id", "anime_ids", type=int, multiple=True, default=(21, 5114), help="MyAnimeList ids to look up")
@click.option("--query", default=None, help="Optional search query")
@click.option("--redis-url", default=None, help="Persist anime/episode/image caches in Redis")
@click.option("--verbose", is_flag=True, help="Log cache hits and misses")
def main(anime_ids: tuple[int, ...], query: str | None, redis_url: str | None, verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(run(anime_ids, query, redis_url))


if __name__ == "__main__":
    main()
