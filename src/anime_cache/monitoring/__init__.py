from .metrics import (
    Counter,
    Histogram,
    cache_evictions_total,
    cache_factory_latency_seconds,
    cache_requests_total,
    cache_storage_errors_total,
)

__all__ = [
    "Counter",
    "Histogram",
    "cache_requests_total",
    "cache_evictions_total",
    "cache_storage_errors_total",
    "cache_factory_latency_seconds",
]
