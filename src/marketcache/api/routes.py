"""Admin API routes for cache and quota state."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from marketcache.context import AppContext

logger = logging.getLogger(__name__)
router = APIRouter()


def get_context(request: Request) -> AppContext:
    """Resolve the runtime context attached to the app."""
    return request.app.state.context


# --- Response Models ---

class MemoryStats(BaseModel):
    """Memory tier statistics."""
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class PersistentStats(BaseModel):
    """Persistent tier statistics."""
    count: int
    total_bytes: int
    location: str


class CacheStatsResponse(BaseModel):
    """Cache statistics for both tiers."""
    memory: MemoryStats
    persistent: PersistentStats | None = Field(
        default=None, description="None when the file cache is disabled"
    )
    in_flight: int = 0


class CleanupResponse(BaseModel):
    """Entries removed per tier."""
    memory_removed: int
    persistent_removed: int


class BudgetInfo(BaseModel):
    """Daily budget snapshot."""
    daily_limit: int
    used: int
    remaining: int
    reset_time: str


class LimiterInfo(BaseModel):
    """Sliding window limiter snapshot."""
    name: str
    used: int
    remaining: int
    max_requests: int
    window_seconds: float
    retry_after: float


class QuotaResponse(BaseModel):
    """Quota state for both upstreams."""
    tradera: BudgetInfo
    blocket: LimiterInfo


# --- Endpoints ---

@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Get memory and persistent tier statistics."""
    return await context.cache.stats()


@router.post("/cache/cleanup", response_model=CleanupResponse)
async def cache_cleanup(context: AppContext = Depends(get_context)) -> dict[str, int]:
    """Sweep expired entries from both tiers."""
    result = await context.cache.cleanup()
    return result.to_dict()


@router.delete("/cache", response_model=CleanupResponse)
async def cache_clear(
    namespace: str | None = Query(
        default=None,
        description="Namespace to clear (memory tier only); omit to wipe everything",
    ),
    context: AppContext = Depends(get_context),
) -> dict[str, int]:
    """Clear the whole cache, or one namespace."""
    result = await context.cache.clear(namespace)
    return result.to_dict()


@router.get("/quota", response_model=QuotaResponse)
async def quota(context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Get the Tradera budget and Blocket limiter state."""
    return await context.quota_status()
