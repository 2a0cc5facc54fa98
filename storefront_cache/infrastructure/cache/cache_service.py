"""
Per-domain cache helpers.

Thin, named wrappers over CacheManager so route handlers never build keys by
hand:

- UserCacheService: user-scoped data (profile, addresses, wishlist, cart,
  orders, order details) plus per-user stats and bulk clear
- CatalogCacheService: shared catalogue data (products, product lists,
  search suggestions, ratings, categories)
- OptionsCacheService: reference-data option lists served through the
  process-local micro-cache in front of the KV store
"""

import time
from typing import Any

from storefront_cache.core.config.constants import (
    DEFAULT_PRODUCT_LIST_LIMIT,
    KEY_SEPARATOR,
    ORDERS_DEFAULT_FILTER,
    ORDERS_LIST_QUALIFIER,
    RATINGS_ALL_QUALIFIER,
    RATINGS_PRODUCT_QUALIFIER,
    SEARCH_MIN_QUERY_LENGTH,
    CacheDomain,
    CacheStatus,
    CacheTier,
    DataSource,
    MetricOperation,
    MetricSource,
    Stage,
)
from storefront_cache.core.exceptions import CacheError
from storefront_cache.core.logging.logger import get_logger, log_stage
from storefront_cache.infrastructure.cache.cache_manager import (
    CacheManager,
    CacheResult,
    Fetch,
    InvalidationReport,
)
from storefront_cache.infrastructure.cache.keys import (
    USER_DOMAINS,
    build_cache_key,
    domain_patterns,
    user_key_patterns,
)
from storefront_cache.infrastructure.cache.micro_cache import (
    MICRO_CACHE_DOMAINS,
    MicroCache,
    get_micro_cache,
)

logger = get_logger(__name__)


def orders_qualifier(filters: str | None = None) -> str:
    """``list:<filters>``, or ``list:default`` when no filter is given."""
    return f"{ORDERS_LIST_QUALIFIER}{KEY_SEPARATOR}{filters or ORDERS_DEFAULT_FILTER}"


def ratings_qualifier(product_id: str | int | None = None) -> str:
    if product_id is None or str(product_id).strip() == "":
        return RATINGS_ALL_QUALIFIER
    return f"{RATINGS_PRODUCT_QUALIFIER}{KEY_SEPARATOR}{product_id}"


# =============================================================================
# USER-SCOPED DATA
# =============================================================================


class UserCacheService:
    """
    Cache helpers for data owned by one user.

    ``get_*`` methods are bounded reads with no fallback (None on a miss),
    ``set_*`` methods wait for the store, ``clear_*`` methods never raise.
    The read-through variants (``profile``, ``orders``, ...) are what
    request handlers normally use.
    """

    def __init__(self, cache_manager: CacheManager):
        self.cache = cache_manager

    # -- keys ---------------------------------------------------------------

    def get_cache_key(
        self, domain: CacheDomain, user_id: str | int, qualifier: str | int | None = None
    ) -> str:
        return build_cache_key(domain, user_id, qualifier)

    def debug_keys(self, user_id: str | int) -> dict[str, str]:
        """The headline keys of one user, for operator inspection."""
        return {
            "wishlist": self.get_cache_key(CacheDomain.WISHLIST, user_id),
            "orders_default": self.get_cache_key(CacheDomain.ORDERS, user_id, orders_qualifier()),
            "profile": self.get_cache_key(CacheDomain.PROFILE, user_id),
            "addresses": self.get_cache_key(CacheDomain.ADDRESSES, user_id),
            "cart": self.get_cache_key(CacheDomain.CART, user_id),
        }

    # -- profile ------------------------------------------------------------

    async def get_profile(self, user_id: str | int) -> CacheResult | None:
        return await self.cache.get(CacheDomain.PROFILE, user_id)

    async def set_profile(self, user_id: str | int, profile: dict[str, Any]) -> bool:
        return await self.cache.set(CacheDomain.PROFILE, profile, user_id)

    async def clear_profile(self, user_id: str | int) -> bool:
        return await self._clear_key(self.get_cache_key(CacheDomain.PROFILE, user_id))

    async def profile(self, user_id: str | int, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.PROFILE, fetch, scope=user_id)

    # -- addresses ----------------------------------------------------------

    async def get_addresses(self, user_id: str | int) -> CacheResult | None:
        return await self.cache.get(CacheDomain.ADDRESSES, user_id)

    async def set_addresses(self, user_id: str | int, addresses: list[Any]) -> bool:
        return await self.cache.set(CacheDomain.ADDRESSES, addresses, user_id)

    async def clear_addresses(self, user_id: str | int) -> bool:
        return await self._clear_key(self.get_cache_key(CacheDomain.ADDRESSES, user_id))

    async def addresses(self, user_id: str | int, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.ADDRESSES, fetch, scope=user_id)

    # -- wishlist -----------------------------------------------------------

    async def get_wishlist(self, user_id: str | int) -> CacheResult | None:
        return await self.cache.get(CacheDomain.WISHLIST, user_id)

    async def set_wishlist(self, user_id: str | int, wishlist: list[Any]) -> bool:
        return await self.cache.set(CacheDomain.WISHLIST, wishlist, user_id)

    async def clear_wishlist(self, user_id: str | int) -> bool:
        return await self._clear_key(self.get_cache_key(CacheDomain.WISHLIST, user_id))

    async def wishlist(self, user_id: str | int, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.WISHLIST, fetch, scope=user_id)

    # -- cart ---------------------------------------------------------------

    async def get_cart(self, user_id: str | int) -> CacheResult | None:
        return await self.cache.get(CacheDomain.CART, user_id)

    async def set_cart(self, user_id: str | int, cart: Any) -> bool:
        return await self.cache.set(CacheDomain.CART, cart, user_id)

    async def clear_cart(self, user_id: str | int) -> bool:
        return await self._clear_key(self.get_cache_key(CacheDomain.CART, user_id))

    async def cart(self, user_id: str | int, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.CART, fetch, scope=user_id)

    # -- orders -------------------------------------------------------------

    async def get_orders(self, user_id: str | int, filters: str | None = None) -> CacheResult | None:
        return await self.cache.get(CacheDomain.ORDERS, user_id, orders_qualifier(filters))

    async def set_orders(self, user_id: str | int, orders: list[Any], filters: str | None = None) -> bool:
        return await self.cache.set(CacheDomain.ORDERS, orders, user_id, orders_qualifier(filters))

    async def clear_all_orders(self, user_id: str | int) -> bool:
        """Drop every cached order list of a user, whatever its filter."""
        report = InvalidationReport()
        for pattern in domain_patterns(CacheDomain.ORDERS, user_id):
            report.merge(await self.cache.delete_pattern(pattern))
        return not report.errors

    async def orders(self, user_id: str | int, fetch: Fetch, filters: str | None = None) -> CacheResult:
        return await self.cache.get_or_compute(
            CacheDomain.ORDERS, fetch, scope=user_id, qualifier=orders_qualifier(filters)
        )

    # -- order details ------------------------------------------------------

    async def get_order_details(self, user_id: str | int, order_id: str | int) -> CacheResult | None:
        return await self.cache.get(CacheDomain.ORDER_DETAILS, user_id, order_id)

    async def set_order_details(self, user_id: str | int, order_id: str | int, order: dict[str, Any]) -> bool:
        return await self.cache.set(CacheDomain.ORDER_DETAILS, order, user_id, order_id)

    async def clear_order_details(self, user_id: str | int, order_id: str | int) -> bool:
        return await self._clear_key(self.get_cache_key(CacheDomain.ORDER_DETAILS, user_id, order_id))

    async def order_details(self, user_id: str | int, order_id: str | int, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(
            CacheDomain.ORDER_DETAILS, fetch, scope=user_id, qualifier=order_id
        )

    # -- whole user ---------------------------------------------------------

    async def get_user_cache_stats(self, user_id: str | int) -> dict[str, dict[str, Any]]:
        """
        Per-domain view of what is cached for one user.

        Returns:
            {domain: {"exists", "keys", "ttl", "stale"}}; ``ttl`` is the
            smallest remaining TTL among the domain's keys (-1 when nothing
            is cached) and ``stale`` is True if any of them is stale
        """
        stats: dict[str, dict[str, Any]] = {}
        for domain in USER_DOMAINS:
            entry: dict[str, Any] = {"exists": False, "keys": 0, "ttl": -1, "stale": False}
            try:
                keys: set[str] = set()
                for pattern in domain_patterns(domain, user_id):
                    keys.update(await self.cache.keys(pattern))

                remaining = []
                for key in sorted(keys):
                    info = await self.cache.entry_info(key)
                    if not info.get("valid"):
                        continue
                    remaining.append(info["ttl_remaining"])
                    entry["stale"] = entry["stale"] or info["stale"]

                if remaining:
                    entry.update(exists=True, keys=len(remaining), ttl=min(remaining))
            except CacheError as e:
                entry["error"] = e.message
            stats[domain.value] = entry
        return stats

    async def clear_all_user_cache(self, user_id: str | int) -> InvalidationReport:
        """Expand every user-scoped pattern of one user and delete the matches."""
        report = InvalidationReport()
        for pattern in user_key_patterns(user_id):
            report.merge(await self.cache.delete_pattern(pattern))
        log_stage(
            logger,
            Stage.INVALIDATION,
            "User cache cleared",
            user_id=str(user_id),
            count=report.count,
            errors=len(report.errors),
        )
        return report

    async def _clear_key(self, key: str) -> bool:
        try:
            await self.cache.delete(key)
        except CacheError as e:
            log_stage(logger, Stage.INVALIDATION, "Cache clear failed", level="warning", cache_key=key, error=e.message)
            return False
        return True


# =============================================================================
# SHARED CATALOGUE DATA
# =============================================================================


class CatalogCacheService:
    """Read-through helpers for catalogue data shared by every user."""

    def __init__(self, cache_manager: CacheManager):
        self.cache = cache_manager

    async def product(self, product_id: str | int, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.PRODUCT, fetch, scope=product_id)

    async def product_list(self, limit: int | None, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(
            CacheDomain.PRODUCT_LIST, fetch, qualifier=limit or DEFAULT_PRODUCT_LIST_LIMIT
        )

    async def search_suggestions(self, query: str | None, fetch: Fetch) -> CacheResult:
        """
        Suggestions for a search query.

        Queries shorter than two characters are answered with an empty
        suggestion list without touching the cache or the origin.
        """
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_QUERY_LENGTH:
            return CacheResult(
                data={"suggestions": []},
                status=CacheStatus.MISS,
                source=DataSource.DATABASE,
                key="",
            )
        return await self.cache.get_or_compute(CacheDomain.SEARCH_SUGGESTIONS, fetch, qualifier=query)

    async def ratings(self, fetch: Fetch, product_id: str | int | None = None) -> CacheResult:
        return await self.cache.get_or_compute(
            CacheDomain.RATINGS, fetch, qualifier=ratings_qualifier(product_id)
        )

    async def categories(self, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.CATEGORIES, fetch)

    async def category_options(self, fetch: Fetch) -> CacheResult:
        return await self.cache.get_or_compute(CacheDomain.CATEGORY_OPTIONS, fetch)


# =============================================================================
# REFERENCE-DATA OPTION LISTS
# =============================================================================


class OptionsCacheService:
    """
    Option lists behind two tiers: the process-local micro-cache, then the
    shared KV store through CacheManager.

    A micro-cache hit never touches the KV store.
    """

    def __init__(self, cache_manager: CacheManager, micro_cache: MicroCache | None = None):
        self.cache = cache_manager
        self.micro_cache = micro_cache if micro_cache is not None else get_micro_cache()

    async def options(self, domain: CacheDomain, fetch: Fetch) -> CacheResult:
        domain = CacheDomain(domain)
        key = build_cache_key(domain)

        if domain in MICRO_CACHE_DOMAINS:
            start = time.perf_counter()
            record = self.micro_cache.lookup(domain)
            if record is not None:
                self.cache.monitor.record(
                    MetricOperation.GET,
                    key,
                    True,
                    (time.perf_counter() - start) * 1000,
                    MetricSource.CACHE,
                )
                self.cache.metrics.record_cache_hit(CacheTier.MEMORY.value, domain.value)
                log_stage(logger, Stage.MICRO_CACHE_LOOKUP, "Served from memory", level="debug", cache_key=key)
                return CacheResult(
                    record.data,
                    CacheStatus.HIT,
                    DataSource.MEMORY_CACHE,
                    key,
                    record.timestamp_ms / 1000,
                )
            self.cache.metrics.record_cache_miss(CacheTier.MEMORY.value, domain.value)

        result = await self.cache.get_or_compute(domain, fetch)
        if domain in MICRO_CACHE_DOMAINS and result.data is not None:
            self.micro_cache.store(domain, result.data)
        return result

    async def sizes(self, fetch: Fetch) -> CacheResult:
        return await self.options(CacheDomain.SIZE_OPTIONS, fetch)

    async def ages(self, fetch: Fetch) -> CacheResult:
        return await self.options(CacheDomain.AGE_OPTIONS, fetch)

    async def genders(self, fetch: Fetch) -> CacheResult:
        return await self.options(CacheDomain.GENDER_OPTIONS, fetch)

    async def categories(self, fetch: Fetch) -> CacheResult:
        return await self.options(CacheDomain.CATEGORY_OPTIONS, fetch)

    async def warm(self, domain: CacheDomain, fetch: Fetch) -> str | None:
        """
        Re-fetch an option list from origin and write it to both tiers.

        Returns:
            The KV key written, or None if the store did not accept it

        Raises:
            Whatever ``fetch`` raises
        """
        domain = CacheDomain(domain)
        data = await fetch()
        if domain in MICRO_CACHE_DOMAINS and data is not None:
            self.micro_cache.store(domain, data)
        if data is None:
            return None
        stored = await self.cache.set(domain, data)
        return build_cache_key(domain) if stored else None
