from .base import NullStorage, StorageAdapter
from .factory import create_storage
from .kv import KeyValueMedium, KeyValueStorage, MemoryMedium
from .redis_adapter import RedisMedium

__all__ = [
    "StorageAdapter",
    "NullStorage",
    "KeyValueMedium",
    "KeyValueStorage",
    "MemoryMedium",
    "RedisMedium",
    "create_storage",
]
