"""anime_cache

Per-domain caching for the anime streaming app: an LRU + TTL cache with tag
invalidation, pluggable persistence (in-memory, session-scoped, Redis) and a
registry of preconfigured domain caches.
"""

from .cache import CacheKeys, TTLCache, cached_call, create_cache_key, with_cache
from .core.models import CacheEntry, CacheStats, StorageKind
from .core.registry import DomainCacheRegistry
from .storage import (
    KeyValueMedium,
    KeyValueStorage,
    MemoryMedium,
    NullStorage,
    RedisMedium,
    StorageAdapter,
    create_storage,
)
from .utils import (
    CacheConfig,
    CircuitBreaker,
    RateLimiter,
    RateLimitExceeded,
    RegistryConfig,
    StorageConfig,
)

__all__ = [
    "TTLCache",
    "DomainCacheRegistry",
    "CacheEntry",
    "CacheStats",
    "StorageKind",
    "StorageAdapter",
    "NullStorage",
    "KeyValueMedium",
    "KeyValueStorage",
    "MemoryMedium",
    "RedisMedium",
    "create_storage",
    "CacheConfig",
    "StorageConfig",
    "RegistryConfig",
    "CircuitBreaker",
    "RateLimiter",
    "RateLimitExceeded",
    "CacheKeys",
    "create_cache_key",
    "with_cache",
    "cached_call",
]

__version__ = "0.1.0"
