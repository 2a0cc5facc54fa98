"""
Cache Admin Service - Educational Documentation
================================================

WHAT IS THIS SERVICE?
---------------------
CacheAdminService holds the operator-facing logic behind the /debug routes:
inspecting keys and entries, clearing keys by pattern, reading the cache
monitor, and per-user cache inspection.

WHY SEPARATE FROM ROUTES?
-------------------------
- Routes stay thin (parse query, call service, return dict)
- The confirm=true rule for destructive operations lives in one place
- Testable without HTTP: tests call the service against an in-memory store

DESTRUCTIVE OPERATIONS:
-----------------------
Bulk deletes require an explicit confirm flag. Without it the service
raises ConfirmationRequiredError, which the app maps to HTTP 400. Nothing is
deleted in that case.
"""

from datetime import datetime, timezone
from typing import Any

from storefront_cache.core.config.constants import CacheDomain, Stage
from storefront_cache.core.exceptions import ConfirmationRequiredError, ValidationError
from storefront_cache.core.logging.logger import get_logger, log_stage
from storefront_cache.infrastructure.cache.cache_manager import CacheManager
from storefront_cache.infrastructure.cache.cache_service import UserCacheService
from storefront_cache.infrastructure.cache.invalidation import CacheInvalidator
from storefront_cache.infrastructure.cache.keys import domain_for_key, is_glob

logger = get_logger(__name__)

_PRODUCT_DOMAINS = {CacheDomain.PRODUCT, CacheDomain.PRODUCT_LIST}
_CATEGORY_DOMAINS = {CacheDomain.CATEGORIES, CacheDomain.CATEGORY_OPTIONS}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_confirm(confirm: bool, message: str) -> None:
    if not confirm:
        raise ConfirmationRequiredError(
            message=message,
            details={"hint": "Add ?confirm=true to proceed", "warning": "This action cannot be undone"},
        )


class CacheAdminService:
    """
    Operator tooling over the cache layer.

    DESIGN PRINCIPLES:
    ------------------
    - Stateless: every call reads the store or monitor directly
    - Store errors surface as CacheError (HTTP 503); they are not hidden
      here because an operator asked for them explicitly
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        invalidator: CacheInvalidator,
        user_cache: UserCacheService,
    ):
        self.cache = cache_manager
        self.invalidator = invalidator
        self.user_cache = user_cache

    # =========================================================================
    # KV inspection
    # =========================================================================

    async def ping(self) -> dict[str, Any]:
        ok = await self.cache.kv_store.ping()
        return {
            "status": "connected" if ok else "error",
            "response": "PONG" if ok else None,
            "circuit": self.cache.breaker.state.value,
            "timestamp": _now(),
        }

    async def list_keys(self, pattern: str | None = None) -> dict[str, Any]:
        pattern = pattern or "*"
        keys = await self.cache.keys(pattern)
        return {"keys": keys, "count": len(keys), "pattern": pattern, "timestamp": _now()}

    async def get_entry(self, key: str) -> dict[str, Any]:
        if not key:
            raise ValidationError(message="Key parameter is required")
        info = await self.cache.entry_info(key)
        info["timestamp"] = _now()
        return info

    async def key_statistics(self) -> dict[str, Any]:
        """Key counts overall and for the product and category families."""
        all_keys = await self.cache.keys("*")
        product_keys = [k for k in all_keys if domain_for_key(k) in _PRODUCT_DOMAINS]
        category_keys = [k for k in all_keys if domain_for_key(k) in _CATEGORY_DOMAINS]
        return {
            "statistics": {
                "total_keys": len(all_keys),
                "product_cache_keys": len(product_keys),
                "category_cache_keys": len(category_keys),
                "all_keys": all_keys,
                "product_keys": product_keys,
                "category_keys": category_keys,
            },
            "cache": self.cache.stats(),
            "timestamp": _now(),
        }

    # =========================================================================
    # KV deletion
    # =========================================================================

    async def delete_entry(self, key: str, confirm: bool = False) -> dict[str, Any]:
        """
        Delete one key, or every key matching it if it contains a glob character.

        Raises:
            ConfirmationRequiredError: For a glob key without confirm=true
        """
        if not key:
            raise ValidationError(message="Key parameter is required")

        if is_glob(key):
            _require_confirm(confirm, f"This will delete every key matching '{key}'. Add ?confirm=true to proceed")
            report = await self.invalidator.clear_pattern(key)
            if not report.deleted_keys:
                return {"action": "no_keys_found", "pattern": key, "timestamp": _now()}
            return {
                "action": "cleared",
                "pattern": key,
                "deletedKeys": report.deleted_keys,
                "count": report.count,
                "errors": report.errors,
                "timestamp": _now(),
            }

        deleted = await self.cache.delete(key)
        return {"action": "cleared", "key": key, "deleted": deleted, "timestamp": _now()}

    async def clear(self, pattern: str | None, confirm: bool) -> dict[str, Any]:
        """
        Bulk delete by pattern (all keys by default).

        Raises:
            ConfirmationRequiredError: Without confirm=true
        """
        pattern = pattern or "*"
        _require_confirm(confirm, f"This will clear every key matching '{pattern}'. Add ?confirm=true to proceed")

        if pattern == "*":
            report = await self.invalidator.clear_all()
        else:
            report = await self.invalidator.clear_pattern(pattern)

        log_stage(logger, Stage.INVALIDATION, "Operator cleared cache", pattern=pattern, count=report.count)
        if not report.deleted_keys and not report.errors:
            return {"message": "No cache keys found to clear", "pattern": pattern, "timestamp": _now()}
        return {
            "action": "all_cache_cleared" if pattern == "*" else "cleared",
            "pattern": pattern,
            "deleted_keys": report.deleted_keys,
            "count": report.count,
            "errors": report.errors,
            "timestamp": _now(),
        }

    # =========================================================================
    # Cache monitor
    # =========================================================================

    def metrics_stats(self) -> dict[str, Any]:
        return {"cache_statistics": self.cache.monitor.get_stats(), "timestamp": _now()}

    def metrics_for_key(self, pattern: str) -> dict[str, Any]:
        if not pattern:
            raise ValidationError(message="Key pattern parameter is required")
        return {"key_metrics": self.cache.monitor.get_key_metrics(pattern), "timestamp": _now()}

    def clear_metrics(self, confirm: bool) -> dict[str, Any]:
        _require_confirm(confirm, "This will clear all recorded cache metrics. Add ?confirm=true to proceed")
        cleared = self.cache.monitor.clear_metrics()
        return {"message": "Cache metrics cleared", "cleared": cleared, "timestamp": _now()}

    # =========================================================================
    # Per-user cache
    # =========================================================================

    async def user_stats(self, user_id: str) -> dict[str, Any]:
        stats = await self.user_cache.get_user_cache_stats(user_id)
        return {"user_id": user_id, "cache_stats": stats, "timestamp": _now()}

    def user_keys(self, user_id: str) -> dict[str, Any]:
        return {"user_id": user_id, "cache_keys": self.user_cache.debug_keys(user_id), "timestamp": _now()}

    async def clear_user(self, user_id: str, confirm: bool) -> dict[str, Any]:
        _require_confirm(confirm, "Add ?confirm=true to clear all cache for this user")
        report = await self.user_cache.clear_all_user_cache(user_id)
        success = not report.errors
        return {
            "user_id": user_id,
            "cache_cleared": success,
            "message": "All user cache cleared successfully" if success else "Failed to clear some cache entries",
            "deleted_keys": report.deleted_keys,
            "count": report.count,
            "timestamp": _now(),
        }
