from __future__ import annotations

import logging
import typing as t

from ..core.models import StorageKind
from .base import NullStorage, StorageAdapter
from .kv import KeyValueMedium, KeyValueStorage

_logger = logging.getLogger(__name__)


def create_storage(
    kind: t.Union[StorageKind, str],
    *,
    session_medium: t.Optional[KeyValueMedium] = None,
    persistent_medium: t.Optional[KeyValueMedium] = None,
) -> StorageAdapter:
    """Pick the adapter for a storage kind.

    A durable kind without a medium degrades to NullStorage so the cache
    keeps working in memory.
    """
    kind = StorageKind(kind)
    if kind is StorageKind.MEMORY:
        return NullStorage()

    medium = session_medium if kind is StorageKind.SESSION else persistent_medium
    if medium is None:
        _logger.warning("No %s storage medium available; falling back to in-memory cache", kind.value)
        return NullStorage()
    return KeyValueStorage(medium)
