"""Runtime context wiring the cache and quota governors together."""

import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from marketcache.cache.file import FileCache
from marketcache.cache.manager import CacheManager
from marketcache.cache.memory import MemoryCache
from marketcache.clients.base import BudgetedClient, ThrottledClient
from marketcache.config import Settings, get_settings
from marketcache.quota.budget import DailyBudget
from marketcache.quota.limiter import SlidingWindowLimiter

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """
    Process-wide cache and quota state.

    Built once at startup and handed to every collaborator, so tests can
    create isolated contexts instead of sharing module-level singletons.
    """

    settings: Settings
    cache: CacheManager
    tradera_budget: DailyBudget
    blocket_limiter: SlidingWindowLimiter

    async def start(self) -> None:
        """Start background maintenance."""
        await self.cache.start_cleanup_task()

    async def close(self) -> None:
        """Stop background maintenance."""
        await self.cache.close()

    def http_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.settings.http_timeout_connect,
            read=self.settings.http_timeout_read,
            write=10.0,
            pool=10.0,
        )

    def tradera_client(self, **kwargs: Any) -> BudgetedClient:
        """Client bound to the shared Tradera daily budget."""
        kwargs.setdefault("timeout", self.http_timeout())
        return BudgetedClient("tradera", self.cache, self.tradera_budget, **kwargs)

    def blocket_client(self, **kwargs: Any) -> ThrottledClient:
        """Client bound to the shared Blocket burst limiter."""
        kwargs.setdefault("timeout", self.http_timeout())
        kwargs.setdefault("max_retries", self.settings.http_max_retries)
        return ThrottledClient("blocket", self.cache, self.blocket_limiter, **kwargs)

    async def quota_status(self) -> dict[str, Any]:
        """Snapshot of both upstream governors."""
        budget = await self.tradera_budget.snapshot()
        limiter = await self.blocket_limiter.stats()
        return {
            "tradera": budget.to_dict(),
            "blocket": limiter.to_dict(),
        }


def create_context(
    settings: Settings | None = None,
    clock: Callable[[], float] | None = None,
) -> AppContext:
    """
    Create the runtime context from settings.

    Args:
        settings: Settings to use (defaults to environment configuration)
        clock: Shared time source returning epoch seconds

    Returns:
        AppContext instance
    """
    settings = settings or get_settings()

    memory = MemoryCache(max_size=settings.memory_max_size, clock=clock)
    file = FileCache(settings.cache_dir, clock=clock) if settings.enable_file_cache else None
    cache = CacheManager(
        memory=memory,
        file=file,
        single_flight=settings.single_flight,
        cleanup_interval_seconds=settings.cleanup_interval_seconds,
    )

    context = AppContext(
        settings=settings,
        cache=cache,
        tradera_budget=DailyBudget(
            daily_limit=settings.tradera_daily_limit,
            reset_hour_utc=settings.budget_reset_hour_utc,
            name="tradera",
            clock=clock,
        ),
        blocket_limiter=SlidingWindowLimiter(
            max_requests=settings.blocket_max_requests,
            window_seconds=settings.blocket_window_seconds,
            name="blocket",
            clock=clock,
        ),
    )
    logger.info(
        f"Initialized cache (memory max {settings.memory_max_size}, "
        f"file {'at ' + str(settings.cache_dir) if file else 'disabled'})"
    )
    return context
