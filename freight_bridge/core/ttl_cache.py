"""
TTL Cache v1.0.0

Small process-local expiring key/value store for hot-path lookups
(SKU mappings, freight estimates).

- Expiry is lazy: a stale entry is dropped when it is next read.
- Size is bounded: when a set pushes the cache past max_entries, the
  oldest-inserted key is evicted (insertion order, not LRU).
- Overwriting a key moves it to the back of the eviction order.

Safe for single-threaded asyncio use; there is no await between a read and
the matching write.

Usage:
    cache = TTLCache(ttl_seconds=300, max_entries=10000)
    cache.set("shop::SKU-1", mapping)
    cache.set("shop::SKU-2", None, ttl_seconds=60)  # negative entry
    hit = cache.get("shop::SKU-1", MISSING)
"""
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

# Sentinel for callers that cache None as a meaningful value
MISSING: Any = object()


class TTLCache(Generic[K, V]):
    """
    Expiring cache with bounded size and insertion-order eviction.

    Attributes:
        ttl_seconds: Default time-to-live for entries
        max_entries: Maximum entries before the oldest is evicted
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl_seconds: Default time-to-live in seconds
            max_entries: Maximum number of entries
            clock: Monotonic time source, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        # key -> (value, expires_at)
        self._store: "OrderedDict[K, Tuple[V, float]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: K, default: Any = None) -> Any:
        """
        Return the cached value, or default when absent or expired.

        An expired entry is removed as a side effect.
        """
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return default

        value, expires_at = entry
        if expires_at <= self._clock():
            del self._store[key]
            self._misses += 1
            return default

        self._hits += 1
        return value

    def set(self, key: K, value: V, ttl_seconds: Optional[float] = None) -> None:
        """
        Insert or overwrite an entry.

        Args:
            key: Cache key
            value: Value to store (None is a valid value)
            ttl_seconds: Override for the default TTL
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        # Re-inserting moves the key to the back of the eviction order
        self._store.pop(key, None)
        self._store[key] = (value, self._clock() + ttl)

        if len(self._store) > self.max_entries:
            self._store.popitem(last=False)
            self._evictions += 1

    def delete(self, key: K) -> bool:
        """Remove an entry. Returns True if it was present."""
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        count = len(self._store)
        self._store.clear()
        logger.info(f"[TTL_CACHE] Cleared {count} entries")

    def __len__(self) -> int:
        return len(self._store)

    def size(self) -> int:
        return len(self._store)

    def get_stats(self) -> Dict[str, Any]:
        """Hit/miss/eviction counters for the admin health view."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total > 0 else 0.0,
            "size": len(self._store),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "evictions": self._evictions,
        }
