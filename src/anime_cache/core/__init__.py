"""Core data model and the domain cache registry.

The registry lives in `anime_cache.core.registry`; it is not imported here
because it depends on the cache package, which itself imports these models.
"""

from .models import CacheEntry, CacheStats, StorageKind

__all__ = [
    "CacheEntry",
    "CacheStats",
    "StorageKind",
]
