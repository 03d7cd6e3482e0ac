"""
Metadata Portal Search API Entry Point

Defines the FastAPI application, registers the routers and the global
exception handlers, and runs the periodic cache cleanup task.

`create_app()` builds an isolated instance for tests; `app` is the default
instance served by uvicorn.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .core.cache import InMemoryCache
from .core.errors import (
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .api.dependencies import get_cache

from .api import (
    health_routes,
    record_routes,
    search_routes,
)


logger = logging.getLogger("portal.app")


# ---------------------------------------------------------------------
# Background Tasks
# ---------------------------------------------------------------------

async def run_cache_cleanup(cache: InMemoryCache, interval_seconds: float) -> None:
    """
    Evict expired cache entries every `interval_seconds` until cancelled.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            evicted = cache.cleanup()
        except Exception:
            logger.exception("Cache cleanup failed")
            continue
        if evicted:
            logger.info("Cache cleanup evicted %d entries", evicted)


# ---------------------------------------------------------------------
# Application Factory
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="metadata-portal-search",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(search_routes.router)
    app.include_router(record_routes.router)

    # --------------------------------------------------------------
    # Startup / Shutdown
    # --------------------------------------------------------------

    cleanup_task: Optional[asyncio.Task] = None

    @app.on_event("startup")
    async def _start_cache_cleanup() -> None:
        nonlocal cleanup_task
        logger.info("Starting metadata-portal-search")

        cache = get_cache()
        if isinstance(cache, InMemoryCache) and settings.cache_cleanup_interval_seconds > 0:
            cleanup_task = asyncio.create_task(
                run_cache_cleanup(cache, settings.cache_cleanup_interval_seconds)
            )

    @app.on_event("shutdown")
    async def _stop_cache_cleanup() -> None:
        logger.info("Shutting down metadata-portal-search")
        if cleanup_task is not None:
            cleanup_task.cancel()
            try:
                await cleanup_task
            except asyncio.CancelledError:
                pass

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn)
# ---------------------------------------------------------------------

app = create_app()
