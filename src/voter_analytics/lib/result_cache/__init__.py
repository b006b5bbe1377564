"""Result cache library: bounded memoization for expensive baseline queries.

Public API:
    - ResultCache: Thread-safe LRU cache with per-entry TTL
    - CacheStore: Protocol for swappable cache backends
    - CacheStats: Counters snapshot
    - make_cache_key: Stable key from serialized call arguments
    - memoize: Async memoization decorator over a CacheStore
"""

from voter_analytics.lib.result_cache.cache import CacheStats, CacheStore, ResultCache, make_cache_key
from voter_analytics.lib.result_cache.memoize import memoize

__all__ = [
    "CacheStats",
    "CacheStore",
    "ResultCache",
    "make_cache_key",
    "memoize",
]
