"""
FastAPI Dependency Injection Module - Educational Documentation
================================================================

WHAT IS THIS MODULE?
--------------------
Reusable dependencies giving route handlers access to the cache services
that the lifespan manager builds once at startup and stores on
``app.state``:

    app.state.cache_manager   CacheManager (read-through core)
    app.state.options_cache   OptionsCacheService (micro-cache + KV)
    app.state.catalog_cache   CatalogCacheService
    app.state.user_cache      UserCacheService
    app.state.invalidator     CacheInvalidator
    app.state.warmer          CacheWarmer
    app.state.cache_admin     CacheAdminService
    app.state.origin_sources  OriginSources

WHY app.state AND NOT GLOBALS?
------------------------------
- The state is tied to one app instance, so tests can build several apps
  (several "processes") over one in-memory store
- Everything is built inside the lifespan, with a proper shutdown

Example:
    @router.get("/sizes/options")
    async def sizes(options: OptionsCacheDep, sources: OriginSourcesDep):
        result = await options.sizes(sources.fetcher_for(CacheDomain.SIZE_OPTIONS))
"""

from typing import Annotated

from fastapi import Depends, Request

from storefront_cache.application.services.cache_admin_service import CacheAdminService
from storefront_cache.application.services.origin_sources import OriginSources
from storefront_cache.core.config.settings import Settings, get_settings
from storefront_cache.infrastructure.cache.cache_manager import CacheManager
from storefront_cache.infrastructure.cache.cache_service import (
    CatalogCacheService,
    OptionsCacheService,
    UserCacheService,
)
from storefront_cache.infrastructure.cache.invalidation import CacheInvalidator
from storefront_cache.infrastructure.cache.warmer import CacheWarmer

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def _state(request: Request, name: str):
    """
    Fetch a service from app.state.

    Raises:
        RuntimeError: If the lifespan has not run (app used without a
            TestClient context manager or server startup)
    """
    try:
        return getattr(request.app.state, name)
    except AttributeError as e:
        raise RuntimeError(
            f"'{name}' is not initialized; the application lifespan has not run"
        ) from e


def get_cache_manager(request: Request) -> CacheManager:
    return _state(request, "cache_manager")


def get_options_cache(request: Request) -> OptionsCacheService:
    return _state(request, "options_cache")


def get_catalog_cache(request: Request) -> CatalogCacheService:
    return _state(request, "catalog_cache")


def get_user_cache(request: Request) -> UserCacheService:
    return _state(request, "user_cache")


def get_invalidator(request: Request) -> CacheInvalidator:
    return _state(request, "invalidator")


def get_warmer(request: Request) -> CacheWarmer:
    return _state(request, "warmer")


def get_cache_admin(request: Request) -> CacheAdminService:
    return _state(request, "cache_admin")


def get_origin_sources(request: Request) -> OriginSources:
    return _state(request, "origin_sources")


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings)]

CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]

OptionsCacheDep = Annotated[OptionsCacheService, Depends(get_options_cache)]

CatalogCacheDep = Annotated[CatalogCacheService, Depends(get_catalog_cache)]

UserCacheDep = Annotated[UserCacheService, Depends(get_user_cache)]

InvalidatorDep = Annotated[CacheInvalidator, Depends(get_invalidator)]

WarmerDep = Annotated[CacheWarmer, Depends(get_warmer)]

CacheAdminDep = Annotated[CacheAdminService, Depends(get_cache_admin)]

OriginSourcesDep = Annotated[OriginSources, Depends(get_origin_sources)]
