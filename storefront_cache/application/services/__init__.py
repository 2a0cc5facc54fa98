"""
Application Services Package
=============================

Services used by the API routes.

WHY A SERVICE LAYER?
--------------------
Routes handle HTTP, services handle the cache operations behind them:

- OriginSources: the origin fetchers for the reference-data endpoints
- CacheAdminService: inspection and deletion behind the /debug routes

Both can be tested without an HTTP client.
"""

from storefront_cache.application.services.cache_admin_service import CacheAdminService
from storefront_cache.application.services.origin_sources import OriginSources

__all__ = [
    "CacheAdminService",
    "OriginSources",
]
