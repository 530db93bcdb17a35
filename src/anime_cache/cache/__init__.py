from .helpers import CacheKeys, cached_call, create_cache_key, with_cache
from .ttl_cache import TTLCache

__all__ = [
    "TTLCache",
    "CacheKeys",
    "create_cache_key",
    "with_cache",
    "cached_call",
]
