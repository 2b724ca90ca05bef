"""
Daily call budget for quota-scarce upstreams.

Tracks calls against a hard daily ceiling that resets at a fixed UTC hour.
Unlike the sliding window limiter this never waits: the reset is hours
away, so an exhausted budget fails fast with QuotaExhaustedError.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)


class QuotaExhaustedError(Exception):
    """Raised when a daily budget has no calls left."""

    def __init__(
        self,
        name: str,
        used: int,
        daily_limit: int,
        reset_time: datetime,
    ) -> None:
        self.name = name
        self.used = used
        self.daily_limit = daily_limit
        self.reset_time = reset_time
        super().__init__(
            f"{name} API budget exhausted ({used}/{daily_limit}). "
            f"Resets at {reset_time.isoformat()}. Use cached data or wait."
        )

    def retry_after(self, now: float | None = None) -> float:
        """Seconds until the budget resets."""
        current = now if now is not None else time.time()
        return max(0.0, self.reset_time.timestamp() - current)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "quota_exhausted",
            "source": self.name,
            "used": self.used,
            "daily_limit": self.daily_limit,
            "reset_time": self.reset_time.isoformat(),
            "message": str(self),
        }


@dataclass(frozen=True)
class BudgetSnapshot:
    """Read-only copy of a budget's state."""

    daily_limit: int
    used: int
    remaining: int
    reset_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_limit": self.daily_limit,
            "used": self.used,
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat(),
        }


def next_reset_time(now: float, reset_hour_utc: int = 0) -> datetime:
    """
    Get the first reset boundary strictly after ``now``.

    Args:
        now: Current time in epoch seconds
        reset_hour_utc: Hour of day (UTC) at which budgets reset

    Returns:
        Timezone-aware UTC datetime of the next boundary
    """
    current = datetime.fromtimestamp(now, tz=timezone.utc)
    boundary = current.replace(hour=reset_hour_utc, minute=0, second=0, microsecond=0)
    if boundary <= current:
        boundary += timedelta(days=1)
    return boundary


class DailyBudget:
    """
    Daily call budget with an in-place reset.

    Every operation, reads included, first checks whether the reset
    boundary has passed, so an idle process self-heals before reporting or
    consuming quota. Mutations are serialized by a lock.
    """

    def __init__(
        self,
        daily_limit: int = 100,
        reset_hour_utc: int = 0,
        name: str = "budget",
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the budget.

        Args:
            daily_limit: Maximum calls per period
            reset_hour_utc: Hour of day (UTC) at which the budget resets
            name: Name used in logs and errors
            clock: Time source returning epoch seconds
        """
        if daily_limit < 0:
            raise ValueError(f"daily_limit must be non-negative, got {daily_limit}")
        if not 0 <= reset_hour_utc <= 23:
            raise ValueError(f"reset_hour_utc must be 0-23, got {reset_hour_utc}")

        self._name = name
        self._clock = clock or time.time
        self._reset_hour = reset_hour_utc
        self._daily_limit = daily_limit
        self._used = 0
        self._remaining = daily_limit
        self._reset_time = next_reset_time(self._clock(), reset_hour_utc)
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def daily_limit(self) -> int:
        return self._daily_limit

    def _check_reset(self) -> None:
        """Reset the budget if the boundary has passed (caller must hold lock)."""
        now = self._clock()
        if now >= self._reset_time.timestamp():
            self._used = 0
            self._remaining = self._daily_limit
            self._reset_time = next_reset_time(now, self._reset_hour)
            logger.info(
                f"[{self._name}] Budget reset, next reset at {self._reset_time.isoformat()}"
            )

    def _record(self) -> None:
        self._used = min(self._daily_limit, self._used + 1)
        self._remaining = self._daily_limit - self._used
        logger.info(
            f"[{self._name}] API call made. Budget: {self._remaining}/{self._daily_limit}"
        )

    def _exhausted_error(self) -> QuotaExhaustedError:
        return QuotaExhaustedError(
            name=self._name,
            used=self._used,
            daily_limit=self._daily_limit,
            reset_time=self._reset_time,
        )

    async def check_reset(self) -> None:
        """Reset the budget if the reset boundary has passed."""
        async with self._lock:
            self._check_reset()

    async def can_call(self) -> bool:
        """Check whether any calls are left in the current period."""
        async with self._lock:
            self._check_reset()
            return self._remaining > 0

    async def record_call(self) -> None:
        """
        Record one dispatched call.

        Call this immediately before dispatch: a dispatched call consumes
        quota whether or not the upstream succeeds.
        """
        async with self._lock:
            self._check_reset()
            self._record()

    async def acquire(self) -> None:
        """
        Check and record a call in one step.

        Raises:
            QuotaExhaustedError: If no calls are left; nothing is recorded
        """
        async with self._lock:
            self._check_reset()
            if self._remaining <= 0:
                logger.warning(
                    f"[{self._name}] Budget exhausted ({self._used}/{self._daily_limit})"
                )
                raise self._exhausted_error()
            self._record()

    async def snapshot(self) -> BudgetSnapshot:
        """Get a read-only copy of the budget."""
        async with self._lock:
            self._check_reset()
            return BudgetSnapshot(
                daily_limit=self._daily_limit,
                used=self._used,
                remaining=self._remaining,
                reset_time=self._reset_time,
            )
