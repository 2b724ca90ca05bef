"""In-memory LRU cache tier."""

import asyncio
import logging
from collections import OrderedDict
from typing import Any

from marketcache.cache.base import CacheEntry, CacheTier, Clock

logger = logging.getLogger(__name__)


class MemoryCache(CacheTier):
    """
    Bounded in-memory cache with TTL expiry and LRU eviction.

    The hot path of the tiered cache. Entries are kept in access order so
    the least recently accessed entry is always at the front; inserting a
    new key at capacity evicts it.

    Limitations:
    - Not shared across processes
    - Lost on restart
    """

    def __init__(
        self,
        max_size: int = 100,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize in-memory cache.

        Args:
            max_size: Maximum number of entries (must be positive)
            clock: Time source returning epoch seconds
        """
        super().__init__(clock)
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_size = max_size
        self._hits = 0
        self._misses = 0
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    @property
    def max_size(self) -> int:
        return self._max_size

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Get a live entry, counting the hit or miss."""
        async with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(now):
                del self._store[key]
                self._misses += 1
                return None

            entry.last_accessed_at = now
            self._store.move_to_end(key)
            self._hits += 1
            return entry

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float,
        created_at: float | None = None,
    ) -> None:
        """Set a value, evicting the least recently accessed entry if full."""
        async with self._lock:
            now = self._clock()
            if key not in self._store and len(self._store) >= self._max_size:
                self._evict_lru()

            self._store[key] = CacheEntry(
                value=value,
                expires_at=now + ttl_seconds,
                created_at=created_at if created_at is not None else now,
                last_accessed_at=now,
            )
            self._store.move_to_end(key)

    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        async with self._lock:
            return self._store.pop(key, None) is not None

    async def has(self, key: str) -> bool:
        """Check for a live entry without touching LRU order or counters."""
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._store[key]
                return False
            return True

    async def age_seconds(self, key: str) -> float | None:
        """Age of a live entry, without touching LRU order or counters."""
        async with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None or entry.is_expired(now):
                return None
            return entry.age_seconds(now)

    async def clear(self) -> int:
        """Remove all entries and reset hit/miss counters."""
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            self._hits = 0
            self._misses = 0
            return count

    async def clear_prefix(self, prefix: str) -> int:
        """Remove entries whose key starts with ``prefix``."""
        async with self._lock:
            keys_to_delete = [k for k in self._store if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._store[key]
            return len(keys_to_delete)

    async def cleanup(self) -> int:
        """Remove all expired entries."""
        async with self._lock:
            now = self._clock()
            expired_keys = [
                k for k, v in self._store.items()
                if v.is_expired(now)
            ]
            for key in expired_keys:
                del self._store[key]

            if expired_keys:
                logger.debug(f"Cleaned up {len(expired_keys)} expired memory entries")

            return len(expired_keys)

    async def stats(self) -> dict[str, Any]:
        """Return size and hit-rate statistics."""
        async with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._store),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0.0,
            }

    def keys(self) -> list[str]:
        """Current keys in LRU order, least recently accessed first."""
        return list(self._store.keys())

    def size(self) -> int:
        """Get current number of entries (sync method for convenience)."""
        return len(self._store)

    def _evict_lru(self) -> None:
        """Evict the least recently accessed entry (caller must hold lock)."""
        if not self._store:
            return

        evicted_key, _ = self._store.popitem(last=False)
        logger.debug(f"LRU evicted: {evicted_key}")
