"""Cache entry model and the abstract base class for cache tiers."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """
    A cached value with timing metadata.

    All timestamps are epoch seconds taken from the owning tier's clock.

    Attributes:
        value: Cached payload (opaque, JSON-serializable for the file tier)
        expires_at: Absolute expiry, fixed at write time
        created_at: When the value was originally written
        last_accessed_at: Last read or write (memory tier LRU bookkeeping)
    """

    value: Any
    expires_at: float
    created_at: float
    last_accessed_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        """Expiry is inclusive: an entry is gone at exactly ``expires_at``."""
        return now >= self.expires_at

    def age_seconds(self, now: float) -> float:
        """Seconds since the value was originally created."""
        return max(0.0, now - self.created_at)

    def ttl_remaining(self, now: float) -> float:
        """Seconds left before expiry, floored at zero."""
        return max(0.0, self.expires_at - now)

    def to_record(self) -> dict[str, Any]:
        """Serializable form stored by the persistent tier."""
        return {
            "value": self.value,
            "expires_at": self.expires_at,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "CacheEntry":
        """
        Rebuild an entry from a persisted record.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        return cls(
            value=data["value"],
            expires_at=float(data["expires_at"]),
            created_at=float(data["created_at"]),
        )


class CacheTier(ABC):
    """
    Abstract base class for one tier of the cache.

    Tiers are plain key/value stores with per-entry TTLs. Namespacing and
    TTL policy live one level up, in the cache manager.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or time.time

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this tier.

        Returns:
            Tier name (e.g., 'memory', 'file')
        """
        ...

    @abstractmethod
    async def get_entry(self, key: str) -> CacheEntry | None:
        """
        Get the live entry stored under a key.

        Args:
            key: Cache key

        Returns:
            The entry, or None if missing/expired
        """
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float,
        created_at: float | None = None,
    ) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time-to-live in seconds
            created_at: Original creation time when copying between tiers
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a value.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def clear(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries removed
        """
        ...

    @abstractmethod
    async def cleanup(self) -> int:
        """
        Sweep expired (or unreadable) entries.

        Returns:
            Number of entries removed
        """
        ...

    @abstractmethod
    async def stats(self) -> dict[str, Any]:
        """Return tier statistics."""
        ...

    def now(self) -> float:
        """Current time according to this tier's clock."""
        return self._clock()

    async def get(self, key: str) -> Any | None:
        """
        Get a value from the tier.

        A stored ``None`` payload is indistinguishable from a miss here;
        use ``get_entry`` when that matters.
        """
        entry = await self.get_entry(key)
        return entry.value if entry is not None else None

    async def has(self, key: str) -> bool:
        """Check if a live entry exists for the key."""
        return await self.get_entry(key) is not None

    async def age_seconds(self, key: str) -> float | None:
        """Age of the live entry relative to its creation, or None."""
        entry = await self.get_entry(key)
        if entry is None:
            return None
        return entry.age_seconds(self._clock())
