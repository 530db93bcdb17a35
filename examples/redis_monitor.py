#!/usr/bin/env python3
"""Watch the domain cache entries persisted in Redis."""

import time
from typing import Optional

import click

from anime_cache import DomainCacheRegistry, KeyValueStorage, RedisMedium


def _now() -> str:
    return time.strftime("%H:%M:%S")


def show_domain(storage: KeyValueStorage, name: str, prefix: str, tail: int) -> None:
    now = time.time()
    entries = sorted(storage.load_all(prefix), key=lambda item: item[1].last_accessed_at, reverse=True)
    live = [(key, entry) for key, entry in entries if entry.is_valid(now)]
    print(f"  {name:<9} prefix={prefix:<16} stored={len(entries):<5} live={len(live)}")
    for key, entry in live[:tail]:
        remaining = entry.ttl - entry.age(now)
        tags = ",".join(sorted(entry.tags)) or "-"
        print(f"      - {key}  expires_in={remaining:6.0f}s  tags={tags}")


def monitor(medium: RedisMedium, prefixes: dict, interval: float, tail: int) -> None:
    storage = KeyValueStorage(medium)
    while True:
        print(f"\n[{_now()}] Redis cache monitor")
        for name, prefix in prefixes.items():
            show_domain(storage, name, prefix, tail)
        try:
            time.sleep(interval)
        except KeyboardInterrupt:
            break


@click.command()
@click.option("--redis-url", default="redis://localhost:6379/0", help="Redis holding the persisted caches")
@click.option("--interval", default=2.0, type=float, help="Polling interval seconds")
@click.option("--tail", default=5, type=int, help="Show the N most recently used entries per domain")
@click.option("--clear", default=None, help="Clear one domain by name, or 'all'")
def main(redis_url: str, interval: float, tail: int, clear: Optional[str]) -> None:
    medium = RedisMedium.from_url(redis_url)
    caches = DomainCacheRegistry.from_config(persistent_medium=medium, session_medium=medium)
    if clear:
        names = caches.names() if clear == "all" else [clear]
        for name in names:
            caches.get(name).clear()
        print("Cleared:", ", ".join(names))
        return
    monitor(medium, {name: caches.get(name).key_prefix for name in caches}, interval, tail)


if __name__ == "__main__":
    main()
