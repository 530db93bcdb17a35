from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.models import StorageKind


@dataclass
class CacheConfig:
    max_size: int = 1000
    ttl_seconds: float = 300.0
    storage: StorageKind = StorageKind.MEMORY
    cleanup_interval_seconds: float = 60.0
    single_flight: bool = False

    def __post_init__(self) -> None:
        self.storage = StorageKind(self.storage)
        if self.max_size <= 0:
            raise ValueError(f"max_size must be positive, got {self.max_size}")
        if self.ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {self.ttl_seconds}")
        if self.cleanup_interval_seconds <= 0:
            raise ValueError(f"cleanup_interval_seconds must be positive, got {self.cleanup_interval_seconds}")


def default_domains() -> Dict[str, CacheConfig]:
    return {
        "anime": CacheConfig(max_size=500, ttl_seconds=10 * 60, storage=StorageKind.PERSISTENT),
        "episodes": CacheConfig(max_size=1000, ttl_seconds=30 * 60, storage=StorageKind.PERSISTENT),
        "search": CacheConfig(max_size=100, ttl_seconds=5 * 60, storage=StorageKind.SESSION),
        "images": CacheConfig(max_size=2000, ttl_seconds=60 * 60, storage=StorageKind.PERSISTENT),
    }


@dataclass
class StorageConfig:
    redis_url: Optional[str] = None  # persistent medium; None keeps persistent domains in memory
    key_prefix: str = "cache_"


@dataclass
class RegistryConfig:
    domains: Dict[str, CacheConfig] = dataclasses.field(default_factory=default_domains)
    storage: StorageConfig = dataclasses.field(default_factory=StorageConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        """Build a config from plain data.

        Entries under "domains" override the matching default domain field by
        field; unknown domain names add new caches on top of the defaults.
        """
        domains = default_domains()
        for name, values in (data.get("domains") or {}).items():
            base = domains.get(name)
            if base is None:
                domains[name] = CacheConfig(**values)
            else:
                domains[name] = dataclasses.replace(base, **values)

        return cls(
            domains=domains,
            storage=StorageConfig(**(data.get("storage") or {})),
        )
