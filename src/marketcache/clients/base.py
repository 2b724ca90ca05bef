"""Quota-aware client base classes for upstream marketplace APIs."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import httpx

from marketcache.cache.manager import CacheLookup, CacheManager
from marketcache.http.client import HttpClient
from marketcache.quota.budget import DailyBudget, QuotaExhaustedError
from marketcache.quota.limiter import SlidingWindowLimiter

logger = logging.getLogger(__name__)

UpstreamCall = Callable[[], Awaitable[Any]]


class GovernedClient(ABC):
    """
    Abstract base class for quota-governed upstream clients.

    Subclasses decide how an outbound call is admitted (``gate``). Requests
    made through ``self.http`` pass the gate before every attempt, retries
    included. Adapters using another transport must ``await self.gate()``
    themselves right before dispatch.

    Marketplace adapters build on this: they own request building and
    response parsing, and route lookups through ``cached_call`` so quota is
    only spent on genuine cache misses.
    """

    def __init__(
        self,
        name: str,
        cache: CacheManager,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        max_retries: int = 3,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            name: Upstream name (used in logs and stats)
            cache: Shared cache manager
            base_url: Upstream base URL
            timeout: Request timeout configuration
            max_retries: Retry attempts per request (each one is gated)
            headers: Default request headers
            transport: Custom httpx transport (mainly for tests)
        """
        self._name = name
        self._cache = cache
        self._http = HttpClient(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            headers=headers,
            before_request=self.gate,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def http(self) -> HttpClient:
        return self._http

    @abstractmethod
    async def gate(self) -> None:
        """
        Admit one outbound call, recording it against the quota.

        Raises:
            QuotaExhaustedError: If the call must not be made
        """
        ...

    @abstractmethod
    async def quota_status(self) -> dict[str, Any]:
        """
        Report the client's quota state.

        Returns:
            Serializable quota snapshot
        """
        ...

    async def cached_call(
        self,
        namespace: str,
        key: str,
        call: UpstreamCall,
        ttl_seconds: float | None = None,
        force_refresh: bool = False,
    ) -> CacheLookup:
        """
        Serve from cache, or perform the upstream call and cache its result.

        Args:
            namespace: Cache namespace
            key: Cache key within the namespace
            call: Coroutine function performing the upstream request. Requests
                made through ``self.http`` are gated per attempt; any other
                transport must ``await self.gate()`` right before dispatch
            ttl_seconds: Override for the namespace TTL
            force_refresh: Bypass the cache lookup

        Returns:
            CacheLookup with the value and its provenance

        Raises:
            QuotaExhaustedError: On a miss when the quota is spent
            Exception: Upstream failures, propagated unchanged
        """
        try:
            return await self._cache.get_or_fetch(
                namespace,
                key,
                call,
                ttl_seconds=ttl_seconds,
                force_refresh=force_refresh,
            )
        except QuotaExhaustedError:
            raise
        except Exception as e:
            logger.error(f"[{self._name}] Fetch for {namespace}:{key} failed: {e}")
            raise

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.close()

    async def __aenter__(self) -> "GovernedClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class BudgetedClient(GovernedClient):
    """
    Client for an upstream with a hard daily quota.

    Calls fail fast with QuotaExhaustedError once the budget is spent;
    waiting for the reset (hours away) is never done here. Retries default
    to zero since each one costs quota.
    """

    def __init__(
        self,
        name: str,
        cache: CacheManager,
        budget: DailyBudget,
        max_retries: int = 0,
        **kwargs: Any,
    ) -> None:
        self._budget = budget
        super().__init__(name, cache, max_retries=max_retries, **kwargs)

    @property
    def budget(self) -> DailyBudget:
        return self._budget

    async def gate(self) -> None:
        await self._budget.acquire()

    async def quota_status(self) -> dict[str, Any]:
        snapshot = await self._budget.snapshot()
        return {"source": self._name, "type": "daily_budget", **snapshot.to_dict()}


class ThrottledClient(GovernedClient):
    """
    Client for an upstream with a short burst limit.

    Calls wait for a free slot in the sliding window instead of failing;
    the wait is bounded by the window size.
    """

    def __init__(
        self,
        name: str,
        cache: CacheManager,
        limiter: SlidingWindowLimiter,
        **kwargs: Any,
    ) -> None:
        self._limiter = limiter
        super().__init__(name, cache, **kwargs)

    @property
    def limiter(self) -> SlidingWindowLimiter:
        return self._limiter

    async def gate(self) -> None:
        await self._limiter.throttle()

    async def quota_status(self) -> dict[str, Any]:
        stats = await self._limiter.stats()
        return {"source": self._name, "type": "sliding_window", **stats.to_dict()}
