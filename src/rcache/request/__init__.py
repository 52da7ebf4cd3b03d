"""
Request package: request results on top of the LRU store.

This package provides:
- Key canonicalization (keys.py)
- Expiration policy (expiration.py)
- RequestCache facade (cache.py)
- CachedFetcher, an httpx client reading through the cache (fetcher.py)
"""

from rcache.request.keys import canonical_key, outbound_params
from rcache.request.expiration import Expiration, ExpirationPolicy
from rcache.request.cache import RequestCache
from rcache.request.fetcher import CachedFetcher

__all__ = [
    "canonical_key",
    "outbound_params",
    "Expiration",
    "ExpirationPolicy",
    "RequestCache",
    "CachedFetcher",
]
