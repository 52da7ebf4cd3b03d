"""Persistent, capacity-bounded cache for request results."""

from rcache.cache import LRUStore, MemoryStorage, SQLiteStorage, StoreAdapter
from rcache.config import CacheFlags, Settings, get_settings
from rcache.exceptions import (
    CapacityExceededError,
    FetchError,
    RCError,
    SerializationError,
    StorageError,
)
from rcache.request import CachedFetcher, RequestCache, canonical_key
from rcache.types import CacheResult, EntryState, MissReason, RequestOptions, ResultStatus

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CacheFlags",
    "CacheResult",
    "CachedFetcher",
    "CapacityExceededError",
    "EntryState",
    "FetchError",
    "LRUStore",
    "MemoryStorage",
    "MissReason",
    "RCError",
    "RequestCache",
    "RequestOptions",
    "ResultStatus",
    "SQLiteStorage",
    "SerializationError",
    "Settings",
    "StorageError",
    "StoreAdapter",
    "canonical_key",
    "get_settings",
]
