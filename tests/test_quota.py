"""Tests for quota management and rate limiting."""

import asyncio
from datetime import datetime, timezone

import pytest

from marketcache.quota.budget import (
    BudgetSnapshot,
    DailyBudget,
    QuotaExhaustedError,
    next_reset_time,
)
from marketcache.quota.limiter import LimiterStats, SlidingWindowLimiter

from tests.conftest import START_TIME, FakeClock

# Midnight UTC following START_TIME
NEXT_MIDNIGHT = START_TIME + 12 * 3600


class TestLimiterStats:
    """Tests for LimiterStats dataclass."""

    def test_to_dict(self) -> None:
        """Test serialization to dictionary."""
        stats = LimiterStats(
            name="blocket",
            used=2,
            remaining=3,
            max_requests=5,
            window_seconds=1.0,
            retry_after=0.0,
        )
        data = stats.to_dict()

        assert data["name"] == "blocket"
        assert data["used"] == 2
        assert data["remaining"] == 3
        assert data["retry_after"] == 0.0


class TestSlidingWindowLimiter:
    """Tests for sliding window rate limiter."""

    @pytest.fixture
    def limiter(self, clock: FakeClock) -> SlidingWindowLimiter:
        return SlidingWindowLimiter(
            max_requests=5,
            window_seconds=1.0,
            name="blocket",
            clock=clock,
            sleep=clock.sleep,
        )

    @pytest.mark.parametrize(
        "max_requests, window_seconds",
        [(0, 1.0), (-1, 1.0), (5, 0), (5, -1.0)],
    )
    def test_invalid_arguments(self, max_requests: int, window_seconds: float) -> None:
        """Test a limiter that could never admit a call is rejected."""
        with pytest.raises(ValueError):
            SlidingWindowLimiter(max_requests=max_requests, window_seconds=window_seconds)

    @pytest.mark.asyncio
    async def test_single_slot(self, clock: FakeClock) -> None:
        """Test the smallest valid limiter reports stats at every stage."""
        limiter = SlidingWindowLimiter(max_requests=1, window_seconds=1.0, clock=clock)

        assert (await limiter.stats()).retry_after == 0.0
        await limiter.record_call()
        stats = await limiter.stats()
        assert stats.remaining == 0
        assert stats.retry_after == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_allows_within_limit(self, limiter: SlidingWindowLimiter) -> None:
        """Test calls within the limit are allowed."""
        for _ in range(4):
            await limiter.record_call()

        assert await limiter.can_proceed() is True
        assert await limiter.remaining() == 1
        assert await limiter.time_until_next_slot() == 0.0

    @pytest.mark.asyncio
    async def test_blocks_over_limit(
        self, limiter: SlidingWindowLimiter, clock: FakeClock
    ) -> None:
        """Test the sixth call in one window is refused."""
        for _ in range(5):
            await limiter.record_call()
            clock.advance(0.1)

        assert await limiter.can_proceed() is False
        assert await limiter.remaining() == 0

        wait = await limiter.time_until_next_slot()
        assert 0 < wait <= 1.0
        assert wait == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_wait_shrinks_as_time_passes(
        self, limiter: SlidingWindowLimiter, clock: FakeClock
    ) -> None:
        """Test the wait time decreases until the slot opens."""
        for _ in range(5):
            await limiter.record_call()

        previous = await limiter.time_until_next_slot()
        for _ in range(3):
            clock.advance(0.25)
            current = await limiter.time_until_next_slot()
            assert current < previous
            previous = current

        clock.advance(0.25)
        assert await limiter.time_until_next_slot() == 0.0
        assert await limiter.can_proceed() is True

    @pytest.mark.asyncio
    async def test_window_slides(
        self, limiter: SlidingWindowLimiter, clock: FakeClock
    ) -> None:
        """Test old calls leave the window one by one."""
        await limiter.record_call()
        clock.advance(0.5)
        for _ in range(4):
            await limiter.record_call()

        clock.advance(0.5)
        # First call is now exactly one window old
        assert await limiter.remaining() == 1

        clock.advance(0.5)
        assert await limiter.remaining() == 5

    @pytest.mark.asyncio
    async def test_throttle_waits_for_slot(
        self, limiter: SlidingWindowLimiter, clock: FakeClock
    ) -> None:
        """Test throttle sleeps until a slot frees up, then records."""
        for _ in range(5):
            await limiter.throttle()
        assert clock.now == START_TIME

        await limiter.throttle()
        assert clock.now == pytest.approx(START_TIME + 1.0)

        stats = await limiter.stats()
        assert stats.used == 1
        assert stats.remaining == 4

    @pytest.mark.asyncio
    async def test_throttle_concurrent_never_overshoots(self) -> None:
        """Test concurrent throttlers respect the limit."""
        limiter = SlidingWindowLimiter(max_requests=3, window_seconds=0.2)

        await asyncio.gather(*(limiter.throttle() for _ in range(3)))
        assert await limiter.can_proceed() is False

        stats = await limiter.stats()
        assert stats.used == 3

    @pytest.mark.asyncio
    async def test_stats(self, limiter: SlidingWindowLimiter) -> None:
        """Test statistics reporting."""
        for _ in range(5):
            await limiter.record_call()

        stats = await limiter.stats()
        assert stats.name == "blocket"
        assert stats.used == 5
        assert stats.remaining == 0
        assert stats.max_requests == 5
        assert stats.window_seconds == 1.0
        assert stats.retry_after == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_reset(self, limiter: SlidingWindowLimiter) -> None:
        """Test reset forgets recorded calls."""
        for _ in range(5):
            await limiter.record_call()

        await limiter.reset()
        assert await limiter.remaining() == 5


class TestNextResetTime:
    """Tests for reset boundary calculation."""

    def test_next_midnight(self) -> None:
        """Test the default boundary is the next UTC midnight."""
        reset = next_reset_time(START_TIME)
        assert reset == datetime(2025, 1, 2, tzinfo=timezone.utc)
        assert reset.timestamp() == NEXT_MIDNIGHT

    def test_strictly_after_now(self) -> None:
        """Test a time exactly on the boundary rolls to the next day."""
        reset = next_reset_time(NEXT_MIDNIGHT)
        assert reset == datetime(2025, 1, 3, tzinfo=timezone.utc)

    def test_later_hour_same_day(self) -> None:
        """Test a reset hour later today is used as is."""
        reset = next_reset_time(START_TIME, reset_hour_utc=18)
        assert reset == datetime(2025, 1, 1, 18, tzinfo=timezone.utc)

    def test_earlier_hour_rolls_over(self) -> None:
        """Test a reset hour already passed today rolls to tomorrow."""
        reset = next_reset_time(START_TIME, reset_hour_utc=6)
        assert reset == datetime(2025, 1, 2, 6, tzinfo=timezone.utc)


class TestQuotaExhaustedError:
    """Tests for QuotaExhaustedError."""

    def test_message_and_dict(self) -> None:
        """Test the error describes the budget and reset."""
        reset = datetime(2025, 1, 2, tzinfo=timezone.utc)
        error = QuotaExhaustedError("tradera", 100, 100, reset)

        assert "tradera API budget exhausted (100/100)" in str(error)
        assert "2025-01-02T00:00:00+00:00" in str(error)

        data = error.to_dict()
        assert data["error"] == "quota_exhausted"
        assert data["source"] == "tradera"
        assert data["used"] == 100
        assert data["reset_time"] == "2025-01-02T00:00:00+00:00"

    def test_retry_after(self) -> None:
        """Test retry_after counts down to the reset."""
        reset = datetime(2025, 1, 2, tzinfo=timezone.utc)
        error = QuotaExhaustedError("tradera", 100, 100, reset)

        assert error.retry_after(START_TIME) == 12 * 3600
        assert error.retry_after(NEXT_MIDNIGHT + 5) == 0.0


class TestDailyBudget:
    """Tests for the daily call budget."""

    @pytest.fixture
    def budget(self, clock: FakeClock) -> DailyBudget:
        return DailyBudget(daily_limit=100, name="tradera", clock=clock)

    def test_invalid_arguments(self) -> None:
        """Test validation of limit and reset hour."""
        with pytest.raises(ValueError):
            DailyBudget(daily_limit=-1)
        with pytest.raises(ValueError):
            DailyBudget(reset_hour_utc=24)

    @pytest.mark.asyncio
    async def test_fresh_budget(self, budget: DailyBudget) -> None:
        """Test a new budget is full."""
        snapshot = await budget.snapshot()
        assert snapshot == BudgetSnapshot(
            daily_limit=100,
            used=0,
            remaining=100,
            reset_time=datetime(2025, 1, 2, tzinfo=timezone.utc),
        )
        assert await budget.can_call() is True

    @pytest.mark.asyncio
    async def test_exhaustion_and_reset(
        self, budget: DailyBudget, clock: FakeClock
    ) -> None:
        """Test 100 calls exhaust the budget and midnight restores it."""
        for _ in range(100):
            await budget.record_call()
            clock.advance(60)

        assert await budget.can_call() is False
        snapshot = await budget.snapshot()
        assert snapshot.used == 100
        assert snapshot.remaining == 0

        clock.now = NEXT_MIDNIGHT + 1
        assert await budget.can_call() is True
        snapshot = await budget.snapshot()
        assert snapshot.used == 0
        assert snapshot.remaining == 100
        assert snapshot.reset_time == datetime(2025, 1, 3, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_reset_at_exact_boundary(
        self, budget: DailyBudget, clock: FakeClock
    ) -> None:
        """Test the reset happens at the boundary itself."""
        await budget.record_call()
        clock.now = NEXT_MIDNIGHT
        await budget.check_reset()

        assert (await budget.snapshot()).used == 0

    @pytest.mark.asyncio
    async def test_acquire(self, clock: FakeClock) -> None:
        """Test acquire records calls and raises when exhausted."""
        budget = DailyBudget(daily_limit=2, name="tradera", clock=clock)

        await budget.acquire()
        await budget.acquire()

        with pytest.raises(QuotaExhaustedError) as exc_info:
            await budget.acquire()

        error = exc_info.value
        assert error.name == "tradera"
        assert error.used == 2
        assert error.daily_limit == 2
        assert error.reset_time == datetime(2025, 1, 2, tzinfo=timezone.utc)
        assert (await budget.snapshot()).used == 2

    @pytest.mark.asyncio
    async def test_acquire_concurrent(self, clock: FakeClock) -> None:
        """Test concurrent acquirers never exceed the limit."""
        budget = DailyBudget(daily_limit=3, clock=clock)

        results = await asyncio.gather(
            *(budget.acquire() for _ in range(10)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, QuotaExhaustedError)]
        assert len(failures) == 7
        assert (await budget.snapshot()).used == 3

    @pytest.mark.asyncio
    async def test_used_never_exceeds_limit(self, clock: FakeClock) -> None:
        """Test over-recording is capped."""
        budget = DailyBudget(daily_limit=2, clock=clock)
        for _ in range(5):
            await budget.record_call()

        snapshot = await budget.snapshot()
        assert snapshot.used == 2
        assert snapshot.remaining == 0

    @pytest.mark.asyncio
    async def test_zero_limit(self, clock: FakeClock) -> None:
        """Test a zero budget refuses every call."""
        budget = DailyBudget(daily_limit=0, clock=clock)

        assert await budget.can_call() is False
        with pytest.raises(QuotaExhaustedError):
            await budget.acquire()

    @pytest.mark.asyncio
    async def test_snapshot_is_read_only(self, budget: DailyBudget) -> None:
        """Test snapshots don't consume quota."""
        for _ in range(3):
            await budget.snapshot()
            await budget.can_call()

        assert (await budget.snapshot()).used == 0

    @pytest.mark.asyncio
    async def test_snapshot_to_dict(self, budget: DailyBudget) -> None:
        """Test snapshot serialization."""
        await budget.record_call()
        data = (await budget.snapshot()).to_dict()

        assert data == {
            "daily_limit": 100,
            "used": 1,
            "remaining": 99,
            "reset_time": "2025-01-02T00:00:00+00:00",
        }
