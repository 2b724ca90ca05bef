"""
Sliding window rate limiter for bursty upstreams.

Tracks recent outbound call timestamps and answers "can I call now" and
"how long until I can". State is process-local; a restart resets the
window, which is fine for windows measured in seconds.
"""

from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


@dataclass
class LimiterStats:
    """Snapshot of a limiter's window."""

    name: str
    """Limiter name (usually the upstream it guards)."""

    used: int
    """Calls recorded in the current window."""

    remaining: int
    """Calls still allowed in the current window."""

    max_requests: int
    """Maximum calls per window."""

    window_seconds: float
    """Window size in seconds."""

    retry_after: float
    """Seconds until the next slot opens (0 if one is free)."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SlidingWindowLimiter:
    """
    Sliding window rate limiter.

    Counts calls in a trailing time window. Timestamps that have left the
    window are pruned lazily on every query. None of the operations raise.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        name: str = "limiter",
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """
        Initialize sliding window limiter.

        Args:
            max_requests: Maximum calls per window
            window_seconds: Window size in seconds
            name: Name used in logs and stats
            clock: Time source returning epoch seconds
            sleep: Coroutine function used by ``throttle`` to wait
        """
        if max_requests < 1:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")

        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._name = name
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _prune(self, now: float) -> None:
        """Drop timestamps outside the current window (caller must hold lock)."""
        cutoff = now - self._window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def _wait_time(self, now: float) -> float:
        """Seconds until a slot frees up (caller must hold lock)."""
        self._prune(now)
        if len(self._timestamps) < self._max_requests:
            return 0.0
        oldest = self._timestamps[0]
        return max(0.0, oldest + self._window_seconds - now)

    async def can_proceed(self) -> bool:
        """Check whether a call may be made right now."""
        async with self._lock:
            self._prune(self._clock())
            return len(self._timestamps) < self._max_requests

    async def remaining(self) -> int:
        """Calls still allowed in the current window."""
        async with self._lock:
            self._prune(self._clock())
            return max(0, self._max_requests - len(self._timestamps))

    async def time_until_next_slot(self) -> float:
        """Seconds until a call may be made (0 if it may be made now)."""
        async with self._lock:
            return self._wait_time(self._clock())

    async def record_call(self) -> None:
        """Record one outbound call. Never call this for a cache hit."""
        async with self._lock:
            self._timestamps.append(self._clock())

    async def throttle(self) -> None:
        """
        Wait for a free slot, then record the call.

        The wait is bounded by the window size. Checking and recording
        happen under one lock so concurrent throttlers can't overshoot.
        """
        while True:
            async with self._lock:
                now = self._clock()
                wait = self._wait_time(now)
                if wait <= 0:
                    self._timestamps.append(now)
                    return

            logger.debug(f"[{self._name}] Rate limit reached, waiting {wait:.3f}s")
            await self._sleep(wait)

    async def stats(self) -> LimiterStats:
        """Get current usage statistics."""
        async with self._lock:
            now = self._clock()
            retry_after = self._wait_time(now)
            used = len(self._timestamps)
            return LimiterStats(
                name=self._name,
                used=used,
                remaining=max(0, self._max_requests - used),
                max_requests=self._max_requests,
                window_seconds=self._window_seconds,
                retry_after=retry_after,
            )

    async def reset(self) -> None:
        """Forget all recorded calls."""
        async with self._lock:
            self._timestamps.clear()
