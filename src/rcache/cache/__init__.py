"""
Cache package: bounded persistent storage.

This package provides:
- Codec (codec.py): Length-prefixed JSON encoding with integrity check
- Storage adapters (storage.py): Memory and SQLite capacity-bounded media
- Eviction ledger (ledger.py): Frequency/recency ranking of keys
- LRU store (lru.py): Forced-eviction writes on top of the above
"""

from rcache.cache import codec
from rcache.cache.storage import MemoryStorage, SQLiteStorage, StoreAdapter
from rcache.cache.ledger import EvictionLedger
from rcache.cache.lru import LRUStore

__all__ = [
    "codec",
    "StoreAdapter",
    "MemoryStorage",
    "SQLiteStorage",
    "EvictionLedger",
    "LRUStore",
]
