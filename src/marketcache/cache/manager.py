"""Two-tier cache manager with namespace TTL policy and fetch-through."""

import asyncio
import inspect
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable

from marketcache.cache.base import CacheEntry
from marketcache.cache.file import FileCache
from marketcache.cache.memory import MemoryCache
from marketcache.cache.namespaces import NamespacePolicy, resolve_policy

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Any]


@dataclass
class CacheLookup:
    """Result of a cache read or fetch-through."""

    value: Any
    """Cached or freshly fetched value (None on a plain miss)."""

    from_cache: bool
    """Whether the value was served from either cache tier."""

    age_seconds: int | None = None
    """Whole seconds since the value was originally cached."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CleanupResult:
    """Entries removed per tier by a sweep or clear."""

    memory_removed: int = 0
    persistent_removed: int = 0

    @property
    def total(self) -> int:
        return self.memory_removed + self.persistent_removed

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class CacheManager:
    """
    Unified cache over a memory tier and an optional file tier.

    Reads check memory first, then disk; disk hits are promoted into
    memory. Writes always go to memory and additionally to disk for
    durable namespaces. ``get_or_fetch`` only invokes the supplied fetch
    function on a genuine miss, so quota is spent only when needed.
    """

    def __init__(
        self,
        memory: MemoryCache,
        file: FileCache | None = None,
        policies: dict[str, NamespacePolicy] | None = None,
        single_flight: bool = True,
        cleanup_interval_seconds: float = 300,
    ) -> None:
        """
        Initialize the cache manager.

        Args:
            memory: Memory tier
            file: File tier (None disables persistence)
            policies: Namespace policy table (defaults to the built-in table)
            single_flight: Collapse concurrent misses on the same key
            cleanup_interval_seconds: Interval of the background sweep
        """
        self._memory = memory
        self._file = file
        self._policies = policies
        self._single_flight = single_flight
        self._cleanup_interval = cleanup_interval_seconds
        self._in_flight: dict[str, asyncio.Task] = {}
        self._cleanup_task: asyncio.Task | None = None

    @property
    def memory(self) -> MemoryCache:
        return self._memory

    @property
    def file(self) -> FileCache | None:
        return self._file

    @staticmethod
    def make_key(namespace: str, key: str) -> str:
        """Build the composite key used by both tiers."""
        return f"{namespace}:{key}"

    def policy(self, namespace: str) -> NamespacePolicy:
        """Get the TTL policy for a namespace."""
        return resolve_policy(namespace, self._policies)

    def _now(self) -> float:
        return self._memory.now()

    @staticmethod
    def _age(entry: CacheEntry, now: float) -> int:
        return int(math.floor(entry.age_seconds(now)))

    async def get(self, namespace: str, key: str) -> CacheLookup:
        """
        Get a value, checking memory first and then disk.

        A disk hit is promoted into memory with the namespace TTL, capped so
        the memory copy never outlives the disk record. The reported age is
        relative to the original write, not the promotion.
        """
        cache_key = self.make_key(namespace, key)

        entry = await self._memory.get_entry(cache_key)
        if entry is not None:
            return CacheLookup(
                value=entry.value,
                from_cache=True,
                age_seconds=self._age(entry, self._now()),
            )

        if self._file is None:
            return CacheLookup(value=None, from_cache=False)

        entry = await self._file.get_entry(cache_key)
        if entry is None:
            return CacheLookup(value=None, from_cache=False)

        now = self._now()
        ttl = min(self.policy(namespace).ttl_seconds, entry.ttl_remaining(now))
        if ttl > 0:
            await self._memory.set(
                cache_key, entry.value, ttl, created_at=entry.created_at
            )
            logger.debug(f"Promoted {cache_key} from file cache")

        return CacheLookup(
            value=entry.value,
            from_cache=True,
            age_seconds=self._age(entry, now),
        )

    async def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
    ) -> None:
        """
        Set a value in memory, and on disk for durable namespaces.

        Args:
            namespace: Cache namespace
            key: Caller key within the namespace
            value: Value to cache
            ttl_seconds: Override for the namespace TTL
        """
        cache_key = self.make_key(namespace, key)
        policy = self.policy(namespace)
        ttl = ttl_seconds if ttl_seconds is not None else policy.ttl_seconds

        await self._memory.set(cache_key, value, ttl)

        if self._file is not None and policy.durable:
            await self._file.set(cache_key, value, ttl)

    async def has(self, namespace: str, key: str) -> bool:
        """Check if a live entry exists in either tier."""
        cache_key = self.make_key(namespace, key)
        if await self._memory.has(cache_key):
            return True
        if self._file is not None:
            return await self._file.has(cache_key)
        return False

    async def delete(self, namespace: str, key: str) -> bool:
        """Delete a key from both tiers."""
        cache_key = self.make_key(namespace, key)
        deleted = await self._memory.delete(cache_key)
        if self._file is not None:
            deleted = await self._file.delete(cache_key) or deleted
        return deleted

    async def clear(self, namespace: str | None = None) -> CleanupResult:
        """
        Clear everything, or one namespace.

        File records are addressed by hash and can't be matched by prefix,
        so a namespace clear only touches the memory tier.
        """
        if namespace is None:
            result = CleanupResult(memory_removed=await self._memory.clear())
            if self._file is not None:
                result.persistent_removed = await self._file.clear()
            logger.info(f"Cleared all cache entries ({result.total})")
            return result

        removed = await self._memory.clear_prefix(f"{namespace}:")
        logger.info(f"Cleared {removed} memory entries in namespace {namespace}")
        return CleanupResult(memory_removed=removed)

    async def cleanup(self) -> CleanupResult:
        """Sweep expired entries from both tiers."""
        result = CleanupResult(memory_removed=await self._memory.cleanup())
        if self._file is not None:
            result.persistent_removed = await self._file.cleanup()
        if result.total:
            logger.info(
                f"Cache cleanup removed {result.memory_removed} memory "
                f"and {result.persistent_removed} file entries"
            )
        return result

    async def stats(self) -> dict[str, Any]:
        """Return statistics for both tiers."""
        return {
            "memory": await self._memory.stats(),
            "persistent": await self._file.stats() if self._file is not None else None,
            "in_flight": len(self._in_flight),
        }

    async def get_or_fetch(
        self,
        namespace: str,
        key: str,
        fetch_fn: FetchFn,
        ttl_seconds: float | None = None,
        force_refresh: bool = False,
    ) -> CacheLookup:
        """
        Get a cached value, or fetch, cache and return it.

        With single-flight on, the fetch runs in a task shared by every
        caller for the key. Cancelling one caller detaches only that caller;
        the fetch still completes and populates the cache.

        Args:
            namespace: Cache namespace
            key: Caller key within the namespace
            fetch_fn: Callable or coroutine function producing the value;
                expected to enforce quota itself and raise when denied
            ttl_seconds: Override for the namespace TTL
            force_refresh: Skip the lookup and always fetch

        Returns:
            CacheLookup; ``from_cache`` is False for fetched values

        Raises:
            Whatever ``fetch_fn`` raises. Failed fetches are never cached.
        """
        cache_key = self.make_key(namespace, key)

        if not force_refresh:
            if self._single_flight and cache_key in self._in_flight:
                return await self._join(cache_key)

            cached = await self.get(namespace, key)
            if cached.from_cache:
                return cached

        if not self._single_flight:
            return await self._fetch_and_store(namespace, key, fetch_fn, ttl_seconds)

        if cache_key in self._in_flight:
            return await self._join(cache_key)

        task = asyncio.ensure_future(
            self._fetch_and_store(namespace, key, fetch_fn, ttl_seconds)
        )
        self._in_flight[cache_key] = task
        task.add_done_callback(lambda t: self._release(cache_key, t))
        return await asyncio.shield(task)

    def _release(self, cache_key: str, task: asyncio.Task) -> None:
        """Drop a finished fetch from the in-flight map."""
        if self._in_flight.get(cache_key) is task:
            del self._in_flight[cache_key]
        # Mark retrieved so a failure nobody awaited doesn't warn at GC
        if not task.cancelled():
            task.exception()

    async def _join(self, cache_key: str) -> CacheLookup:
        """Wait on another caller's in-progress fetch for the same key."""
        logger.debug(f"Joining in-flight fetch for {cache_key}")
        result = await asyncio.shield(self._in_flight[cache_key])
        return CacheLookup(value=result.value, from_cache=False, age_seconds=None)

    async def _fetch_and_store(
        self,
        namespace: str,
        key: str,
        fetch_fn: FetchFn,
        ttl_seconds: float | None,
    ) -> CacheLookup:
        value = fetch_fn()
        if inspect.isawaitable(value):
            value = await value

        await self.set(namespace, key, value, ttl_seconds)
        return CacheLookup(value=value, from_cache=False, age_seconds=None)

    async def start_cleanup_task(self) -> None:
        """Start background task to periodically sweep expired entries."""
        if self._cleanup_task is not None:
            return

        async def cleanup_loop():
            while True:
                try:
                    await asyncio.sleep(self._cleanup_interval)
                    await self.cleanup()
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.error(f"Cache cleanup error: {e}")

        self._cleanup_task = asyncio.create_task(cleanup_loop())

    async def close(self) -> None:
        """Stop the background sweep."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
