"""Bounded LRU + TTL cache for filter-independent baseline results.

Thread-safe, in-process, and injected wherever it is used.  The
``CacheStore`` protocol lets a distributed store replace it without
touching callers.
"""

import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

_MISSING = object()


class CacheStore(Protocol):
    """Minimal key/value interface the aggregation layer depends on."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def invalidate(self, key: str) -> None: ...

    def clear(self) -> None: ...


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    size: int
    max_entries: int
    hits: int
    misses: int
    evictions: int


def make_cache_key(namespace: str, *args: Any, **kwargs: Any) -> str:
    """Serialize call arguments into a stable cache key.

    Args:
        namespace: Logical name of the cached computation.
        *args: Positional arguments; must be JSON-serializable.
        **kwargs: Keyword arguments; must be JSON-serializable.

    Returns:
        ``namespace:`` followed by the sorted-key JSON of the arguments.
    """
    payload = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str, separators=(",", ":"))
    return f"{namespace}:{payload}"


class ResultCache:
    """In-memory LRU cache whose entries also expire after a fixed TTL.

    Args:
        max_entries: Maximum number of entries retained; the least recently
            used entry is evicted beyond this.
        ttl_seconds: Entry time-to-live in seconds.
        clock: Monotonic time source, overridable for tests.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            msg = "max_entries must be positive"
            raise ValueError(msg)
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be positive"
            raise ValueError(msg)
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return a live cached value, refreshing its recency.

        Args:
            key: Cache key.
            default: Returned when the key is absent or expired.

        Returns:
            The cached value or ``default``.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default
            stored_at, value = entry
            if self._clock() - stored_at >= self._ttl_seconds:
                del self._entries[key]
                self._misses += 1
                return default
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting least-recently-used entries past capacity."""
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1

    def invalidate(self, key: str) -> None:
        """Drop one key if present."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        """Return current counters."""
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_entries=self._max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )
