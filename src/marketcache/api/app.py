"""FastAPI admin application for the marketplace cache."""

import logging
import math
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from marketcache import __version__
from marketcache.api.routes import router as api_router
from marketcache.context import AppContext, create_context
from marketcache.quota.budget import QuotaExhaustedError

logger = logging.getLogger(__name__)


def create_app(context: AppContext | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Runtime context to serve (built from settings if None)
    """
    context = context or create_context()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan events."""
        logger.info("Starting marketcache admin API...")
        await context.start()
        yield
        logger.info("Shutting down marketcache admin API...")
        await context.close()

    app = FastAPI(
        title="Marketplace Cache",
        description="Quota-governed two-tier cache for marketplace search APIs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    @app.exception_handler(QuotaExhaustedError)
    async def quota_exhausted_handler(
        request: Request, exc: QuotaExhaustedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content=exc.to_dict(),
            headers={"Retry-After": str(math.ceil(exc.retry_after()))},
        )

    # Request timing middleware
    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
        return response

    app.include_router(api_router, prefix="/v1")

    @app.get("/health")
    async def health_check():
        budget = await context.tradera_budget.snapshot()
        return {
            "status": "healthy",
            "version": __version__,
            "tradera_api_budget": {
                "remaining": budget.remaining,
                "daily_limit": budget.daily_limit,
                "resets_at": budget.reset_time.isoformat(),
            },
        }

    return app
