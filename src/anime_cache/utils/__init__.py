"""Configuration and resilience helpers."""

from .config import CacheConfig, RegistryConfig, StorageConfig, default_domains
from .resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
    RateLimiter,
    RateLimitExceeded,
)

__all__ = [
    "CacheConfig",
    "StorageConfig",
    "RegistryConfig",
    "default_domains",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
    "RateLimiter",
    "RateLimitExceeded",
]
