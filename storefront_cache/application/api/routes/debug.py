"""
Debug Routes - Educational Documentation
========================================

WHAT ARE THESE ENDPOINTS?
-------------------------
Operator tooling for the cache layer, mounted only when
ENABLE_DEBUG_ROUTES is true (unset: development and test environments only):

    /debug/cache          KV inspection and deletion
    /debug/metrics        the in-memory cache monitor
    /debug/user-cache     one user's cached data

SAFETY RULES:
-------------
- Bulk deletes, including a glob key on DELETE /cache/entry, require
  ?confirm=true; without it the request is rejected with 400 and nothing
  is deleted
- KV errors are not hidden: they surface as 503 with the error details
- These endpoints must not be exposed publicly in production
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront_cache.application.api.dependencies import CacheAdminDep
from storefront_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/debug", tags=["Debug"])


# ============================================================================
# KV CACHE
# ============================================================================


@router.get("/cache/ping")
async def cache_ping(admin: CacheAdminDep):
    """Round-trip to the KV store. 500 if it does not answer."""
    try:
        result = await admin.ping()
    except Exception as e:
        logger.warning("KV ping failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"status": "error", "error": str(e)})
    if result["status"] != "connected":
        return JSONResponse(status_code=500, content=result)
    return result


@router.get("/cache/keys")
async def cache_keys(admin: CacheAdminDep, pattern: str = "*"):
    return await admin.list_keys(pattern)


@router.get("/cache/entry")
async def cache_entry(admin: CacheAdminDep, key: str | None = None):
    """Decoded envelope, age, remaining TTL and staleness of one key."""
    return await admin.get_entry(key or "")


@router.get("/cache/stats")
async def cache_stats(admin: CacheAdminDep):
    return await admin.key_statistics()


@router.delete("/cache/entry")
async def cache_delete_entry(admin: CacheAdminDep, key: str | None = None, confirm: bool = False):
    """Delete one key; a glob key is expanded as a pattern and needs ?confirm=true."""
    return await admin.delete_entry(key or "", confirm)


@router.delete("/cache")
async def cache_clear(admin: CacheAdminDep, pattern: str = "*", confirm: bool = False):
    """Delete every key matching ``pattern`` (all keys by default)."""
    return await admin.clear(pattern, confirm)


# ============================================================================
# CACHE MONITOR
# ============================================================================


@router.get("/metrics/stats")
async def metrics_stats(admin: CacheAdminDep):
    return admin.metrics_stats()


@router.get("/metrics/keys")
async def metrics_keys(admin: CacheAdminDep, pattern: str | None = None):
    """Monitor records whose key contains ``pattern``."""
    return admin.metrics_for_key(pattern or "")


@router.delete("/metrics")
async def metrics_clear(admin: CacheAdminDep, confirm: bool = False):
    return admin.clear_metrics(confirm)


# ============================================================================
# USER CACHE
# ============================================================================


@router.get("/user-cache/{user_id}/stats")
async def user_cache_stats(user_id: str, admin: CacheAdminDep):
    return await admin.user_stats(user_id)


@router.get("/user-cache/{user_id}/keys")
async def user_cache_keys(user_id: str, admin: CacheAdminDep):
    return admin.user_keys(user_id)


@router.delete("/user-cache/{user_id}")
async def user_cache_clear(user_id: str, admin: CacheAdminDep, confirm: bool = False):
    return await admin.clear_user(user_id, confirm)
