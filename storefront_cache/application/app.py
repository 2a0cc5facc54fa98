#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the storefront cache service: lifespan (Redis connection, cache
services), middleware, exception handlers and routes.

Usage:
    uvicorn storefront_cache.application.app:app

    # tests: inject a store and origin fetchers, no Redis needed
    app = create_app(kv_store=InMemoryKeyValueStore(), origin_sources=OriginSources(sizes=...))
"""

from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront_cache.application.api.middleware import setup_middleware
from storefront_cache.application.api.routes.admin import router as admin_router
from storefront_cache.application.api.routes.cache import router as cache_router
from storefront_cache.application.api.routes.debug import router as debug_router
from storefront_cache.application.api.routes.health import router as health_router
from storefront_cache.application.api.routes.options import router as options_router
from storefront_cache.application.services.cache_admin_service import CacheAdminService
from storefront_cache.application.services.origin_sources import OriginSources
from storefront_cache.core.config.constants import (
    HEADER_CACHE_STATUS,
    HEADER_DATA_SOURCE,
    HEADER_REQUEST_ID,
)
from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.exceptions import CacheConnectionError, StorefrontCacheError
from storefront_cache.core.interfaces.cache import KeyValueStore
from storefront_cache.core.logging.logger import get_logger, get_request_id, setup_logging
from storefront_cache.infrastructure.cache.cache_manager import CacheManager
from storefront_cache.infrastructure.cache.cache_service import (
    CatalogCacheService,
    OptionsCacheService,
    UserCacheService,
)
from storefront_cache.infrastructure.cache.invalidation import CacheInvalidator
from storefront_cache.infrastructure.cache.micro_cache import MicroCache, get_micro_cache
from storefront_cache.infrastructure.cache.redis_client import (
    close_redis,
    get_redis_client,
    init_redis,
)
from storefront_cache.infrastructure.cache.warmer import CacheWarmer
from storefront_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


@dataclass
class _Injected:
    """Collaborators passed to create_app; None means "build the default"."""

    kv_store: KeyValueStore | None = None
    origin_sources: OriginSources | None = None
    micro_cache: MicroCache | None = None
    clock: Callable[[], float] | None = None


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    Startup connects Redis only when no store was injected. A Redis that is
    down at startup does not stop the service: reads fall back to origin
    until the connection is restored.
    """
    settings = get_settings()
    injected: _Injected = app.state.injected

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting storefront cache service",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    owns_redis = injected.kv_store is None
    kv_store = injected.kv_store
    if owns_redis:
        try:
            kv_store = await init_redis()
            logger.info("Redis connected")
        except CacheConnectionError as e:
            kv_store = get_redis_client()
            logger.warning("Redis unavailable at startup, serving from origin", error=e.message)

    manager_kwargs = {"clock": injected.clock} if injected.clock else {}
    cache_manager = CacheManager(kv_store=kv_store, **manager_kwargs)
    origin_sources = injected.origin_sources or OriginSources()
    options_cache = OptionsCacheService(cache_manager, injected.micro_cache or get_micro_cache())
    user_cache = UserCacheService(cache_manager)
    invalidator = CacheInvalidator(cache_manager)

    app.state.cache_manager = cache_manager
    app.state.origin_sources = origin_sources
    app.state.options_cache = options_cache
    app.state.catalog_cache = CatalogCacheService(cache_manager)
    app.state.user_cache = user_cache
    app.state.invalidator = invalidator
    app.state.warmer = CacheWarmer(options_cache, origin_sources.configured())
    app.state.cache_admin = CacheAdminService(cache_manager, invalidator, user_cache)

    get_metrics_collector()
    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down application")
        await cache_manager.shutdown()
        if owns_redis:
            await close_redis()
        logger.info("Application shutdown complete")


# ============================================================================
# Exception Handlers
# ============================================================================


async def storefront_exception_handler(request: Request, exc: StorefrontCacheError):
    """Map known errors to their HTTP status (400 validation, 503 cache/origin wiring)."""
    if exc.request_id is None:
        exc.request_id = get_request_id()

    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"Request error: {exc.message}", error_type=type(exc).__name__, path=request.url.path)
    get_metrics_collector().record_error(type(exc).__name__, "request")

    headers = {HEADER_REQUEST_ID: exc.request_id} if exc.request_id else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, **exc.to_dict()},
        headers=headers,
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    kv_store: KeyValueStore | None = None,
    origin_sources: OriginSources | None = None,
    *,
    micro_cache: MicroCache | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        kv_store: Shared KV store; defaults to the global Redis client
        origin_sources: Origin fetchers for the option endpoints
        micro_cache: Process-local micro-cache; defaults to the process singleton
        clock: Wall clock for entry timestamps (tests)

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Read-through cache layer for the storefront API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.injected = _Injected(kv_store, origin_sources, micro_cache, clock)

    # ========================================================================
    # MIDDLEWARE REGISTRATION
    # ========================================================================
    # Middleware runs in REVERSE order of registration: CORS is innermost,
    # the error handler (registered by setup_middleware) is outermost.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID, HEADER_CACHE_STATUS, HEADER_DATA_SOURCE],
    )
    setup_middleware(app)

    app.add_exception_handler(StorefrontCacheError, storefront_exception_handler)

    # ========================================================================
    # ROUTER REGISTRATION
    # ========================================================================
    # Public routes live under API_BASE_PATH (default /api), matching the
    # storefront's URL layout: /api/sizes/options, /api/debug/cache/...
    base_path = settings.API_BASE_PATH

    app.include_router(health_router, prefix=base_path)
    app.include_router(options_router, prefix=base_path)
    app.include_router(cache_router, prefix=base_path)
    app.include_router(admin_router, prefix=base_path)
    if settings.app.ENABLE_DEBUG_ROUTES:
        app.include_router(debug_router, prefix=base_path)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": f"{base_path}/health",
        }

    return app


# Create application instance
app = create_app()


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "storefront_cache.application.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
