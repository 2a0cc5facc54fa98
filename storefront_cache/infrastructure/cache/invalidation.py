"""
Cache invalidation on mutation.

Mutations delete the entries they make stale; nothing is rewritten here, the
next read repopulates through the read-through path. Invalidation never
raises: failures are logged and carried in the InvalidationReport so a
mutation that already succeeded against the origin still reports success.

Usage:
    async with invalidator.after_mutation(keys=[product_key]) as report:
        await update_product(...)
    # the deletes ran before this line, only if the block did not raise
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from storefront_cache.core.config.constants import (
    CacheDomain,
    Stage,
)
from storefront_cache.core.exceptions import CacheError
from storefront_cache.core.logging.logger import get_logger, log_stage
from storefront_cache.infrastructure.cache.cache_manager import CacheManager, InvalidationReport
from storefront_cache.infrastructure.cache.cache_service import orders_qualifier, ratings_qualifier
from storefront_cache.infrastructure.cache.keys import (
    build_cache_key,
    domain_patterns,
    user_key_patterns,
)

logger = get_logger(__name__)

__all__ = ["CacheInvalidator", "InvalidationReport"]


class CacheInvalidator:
    """Entity-level invalidation hooks over a CacheManager."""

    def __init__(self, cache_manager: CacheManager):
        self.cache = cache_manager

    async def invalidate(
        self, keys: Iterable[str] = (), patterns: Iterable[str] = ()
    ) -> InvalidationReport:
        """
        Delete concrete keys and every key matching the glob patterns.

        Returns:
            InvalidationReport listing the keys that existed and were removed
        """
        report = InvalidationReport()

        for key in keys:
            try:
                if await self.cache.delete(key):
                    report.merge(InvalidationReport(deleted_keys=[key]))
            except CacheError as e:
                report.errors.append({"key": key, "error": e.message})

        for pattern in patterns:
            report.merge(await self.cache.delete_pattern(pattern))

        if report.errors:
            log_stage(
                logger,
                Stage.INVALIDATION,
                "Cache invalidation incomplete",
                level="warning",
                count=report.count,
                errors=report.errors,
            )
        else:
            log_stage(logger, Stage.INVALIDATION, "Cache invalidated", count=report.count)
        return report

    @asynccontextmanager
    async def after_mutation(
        self, keys: Iterable[str] = (), patterns: Iterable[str] = ()
    ) -> AsyncIterator[InvalidationReport]:
        """
        Run an invalidation once the wrapped mutation block succeeds.

        The yielded report is filled in after the block exits. If the block
        raises, nothing is deleted and the exception propagates.
        """
        keys, patterns = list(keys), list(patterns)
        report = InvalidationReport()
        yield report
        report.merge(await self.invalidate(keys, patterns))

    # -------------------------------------------------------------------------
    # Entity hooks
    # -------------------------------------------------------------------------

    async def product_changed(self, product_id: str | int) -> InvalidationReport:
        """A product was created, updated or deleted."""
        return await self.invalidate(
            keys=[build_cache_key(CacheDomain.PRODUCT, product_id)],
            patterns=[
                *domain_patterns(CacheDomain.PRODUCT_LIST),
                *domain_patterns(CacheDomain.SEARCH_SUGGESTIONS),
            ],
        )

    async def ratings_changed(self, product_id: str | int | None = None) -> InvalidationReport:
        keys = [build_cache_key(CacheDomain.RATINGS, qualifier=ratings_qualifier())]
        if product_id is not None:
            keys.append(build_cache_key(CacheDomain.RATINGS, qualifier=ratings_qualifier(product_id)))
        return await self.invalidate(keys=keys)

    async def orders_changed(
        self, user_id: str | int, order_id: str | int | None = None
    ) -> InvalidationReport:
        """Every order list of the user, plus one order's details when given."""
        keys = [build_cache_key(CacheDomain.ORDERS, user_id, orders_qualifier())]
        if order_id is not None:
            keys.append(build_cache_key(CacheDomain.ORDER_DETAILS, user_id, order_id))
        return await self.invalidate(keys=keys, patterns=domain_patterns(CacheDomain.ORDERS, user_id))

    async def wishlist_changed(self, user_id: str | int) -> InvalidationReport:
        return await self.invalidate(keys=[build_cache_key(CacheDomain.WISHLIST, user_id)])

    async def addresses_changed(self, user_id: str | int) -> InvalidationReport:
        return await self.invalidate(keys=[build_cache_key(CacheDomain.ADDRESSES, user_id)])

    async def profile_changed(self, user_id: str | int) -> InvalidationReport:
        return await self.invalidate(keys=[build_cache_key(CacheDomain.PROFILE, user_id)])

    async def cart_changed(self, user_id: str | int) -> InvalidationReport:
        return await self.invalidate(keys=[build_cache_key(CacheDomain.CART, user_id)])

    async def options_changed(self, domain: CacheDomain) -> InvalidationReport:
        """
        Reference data changed at the origin.

        Only the shared tier is cleared. Micro-caches in other processes
        keep serving their copy until it ages out.
        """
        return await self.invalidate(keys=[build_cache_key(domain)])

    async def categories_changed(self) -> InvalidationReport:
        return await self.invalidate(
            keys=[
                build_cache_key(CacheDomain.CATEGORIES),
                build_cache_key(CacheDomain.CATEGORY_OPTIONS),
            ],
            patterns=domain_patterns(CacheDomain.PRODUCT_LIST),
        )

    async def clear_user(self, user_id: str | int) -> InvalidationReport:
        return await self.invalidate(patterns=user_key_patterns(user_id))

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    async def clear_pattern(self, pattern: str) -> InvalidationReport:
        return await self.invalidate(patterns=[pattern])

    async def clear_all(self) -> InvalidationReport:
        """Delete every key in the store. Operator use only."""
        logger.warning("Clearing all cache keys", stage=Stage.INVALIDATION.value)
        return await self.invalidate(patterns=["*"])
