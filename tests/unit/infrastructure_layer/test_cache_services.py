"""
Unit Tests for the Per-Domain Cache Services

Tests the micro-cache tier of OptionsCacheService, the user-scoped helpers
of UserCacheService and the catalogue helpers of CatalogCacheService.
"""

import pytest

from storefront_cache.core.config.constants import CacheDomain, CacheStatus, DataSource, MetricOperation
from storefront_cache.infrastructure.cache.cache_service import (
    CatalogCacheService,
    OptionsCacheService,
    UserCacheService,
)
from tests.test_fixtures import CountingFetch


@pytest.fixture
def options_cache(cache_manager, micro_cache):
    return OptionsCacheService(cache_manager, micro_cache)


@pytest.fixture
def user_cache(cache_manager):
    return UserCacheService(cache_manager)


@pytest.fixture
def catalog_cache(cache_manager):
    return CatalogCacheService(cache_manager)


@pytest.mark.unit
class TestOptionsCache:
    """Micro-cache in front of the KV store for sizes, ages and genders."""

    @pytest.mark.asyncio
    async def test_first_read_comes_from_origin(self, options_cache, size_options):
        result = await options_cache.sizes(CountingFetch(size_options))

        assert result.status == CacheStatus.MISS
        assert result.source == DataSource.DATABASE
        assert result.data == size_options

    @pytest.mark.asyncio
    async def test_second_read_comes_from_memory(self, options_cache, size_options):
        fetch = CountingFetch(size_options)

        await options_cache.sizes(fetch)
        result = await options_cache.sizes(fetch)

        assert result.status == CacheStatus.HIT
        assert result.source == DataSource.MEMORY_CACHE
        assert result.data == size_options
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_memory_hit_does_not_touch_store(self, options_cache, kv_store, size_options):
        fetch = CountingFetch(size_options)
        await options_cache.sizes(fetch)
        await options_cache.cache.background.drain()

        kv_store.fail_with = ConnectionError("down")
        result = await options_cache.sizes(fetch)

        assert result.source == DataSource.MEMORY_CACHE
        assert options_cache.cache.breaker.failures == 0

    @pytest.mark.asyncio
    async def test_memory_hit_is_recorded_in_monitor(self, options_cache, monitor, size_options):
        fetch = CountingFetch(size_options)
        await options_cache.sizes(fetch)
        await options_cache.sizes(fetch)

        last = monitor.records[-1]
        assert last.operation == MetricOperation.GET
        assert last.key == "sizes:options"
        assert last.hit is True

    @pytest.mark.asyncio
    async def test_expired_memory_record_falls_through_to_store(
        self, options_cache, fake_clock, size_options
    ):
        fetch = CountingFetch(size_options)
        await options_cache.sizes(fetch)
        await options_cache.cache.background.drain()

        fake_clock.advance(121)
        result = await options_cache.sizes(fetch)

        assert result.source == DataSource.REDIS_CACHE
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_store_hit_refills_memory(self, options_cache, fake_clock, size_options):
        fetch = CountingFetch(size_options)
        await options_cache.ages(fetch)
        await options_cache.cache.background.drain()
        fake_clock.advance(121)
        await options_cache.ages(fetch)

        result = await options_cache.ages(fetch)

        assert result.source == DataSource.MEMORY_CACHE

    @pytest.mark.asyncio
    async def test_category_options_skip_memory(self, options_cache, category_options):
        fetch = CountingFetch(category_options)

        await options_cache.categories(fetch)
        await options_cache.cache.background.drain()
        result = await options_cache.categories(fetch)

        assert result.source == DataSource.REDIS_CACHE
        assert options_cache.micro_cache.lookup(CacheDomain.CATEGORY_OPTIONS) is None

    @pytest.mark.asyncio
    async def test_origin_failure_propagates(self, options_cache):
        with pytest.raises(RuntimeError):
            await options_cache.genders(CountingFetch(error=RuntimeError("origin down")))

    @pytest.mark.asyncio
    async def test_warm_writes_both_tiers(self, options_cache, size_options):
        key = await options_cache.warm(CacheDomain.SIZE_OPTIONS, CountingFetch(size_options))

        assert key == "sizes:options"
        assert options_cache.micro_cache.lookup(CacheDomain.SIZE_OPTIONS).data == size_options
        assert (await options_cache.cache.get(CacheDomain.SIZE_OPTIONS)).data == size_options

    @pytest.mark.asyncio
    async def test_warm_reports_unwritten_key(self, options_cache, kv_store, size_options):
        kv_store.fail_with = ConnectionError("down")
        assert await options_cache.warm(CacheDomain.SIZE_OPTIONS, CountingFetch(size_options)) is None


@pytest.mark.unit
class TestUserCache:
    @pytest.mark.asyncio
    async def test_set_get_clear_profile(self, user_cache):
        assert await user_cache.set_profile(42, {"name": "Ada"}) is True
        assert (await user_cache.get_profile(42)).data == {"name": "Ada"}

        assert await user_cache.clear_profile(42) is True
        assert await user_cache.get_profile(42) is None

    @pytest.mark.asyncio
    async def test_clear_never_raises(self, user_cache, kv_store):
        kv_store.fail_with = ConnectionError("down")
        assert await user_cache.clear_wishlist(42) is False

    @pytest.mark.asyncio
    async def test_orders_are_keyed_by_filter(self, user_cache):
        await user_cache.set_orders(42, [{"id": 1}])
        await user_cache.set_orders(42, [], filters="status=cancelled")

        assert (await user_cache.get_orders(42)).data == [{"id": 1}]
        assert (await user_cache.get_orders(42, "status=cancelled")).data == []

    @pytest.mark.asyncio
    async def test_clear_all_orders(self, user_cache):
        await user_cache.set_orders(42, [{"id": 1}])
        await user_cache.set_orders(42, [], filters="status=cancelled")
        await user_cache.set_orders(43, [{"id": 2}])

        assert await user_cache.clear_all_orders(42) is True

        assert await user_cache.get_orders(42) is None
        assert await user_cache.get_orders(42, "status=cancelled") is None
        assert await user_cache.get_orders(43) is not None

    @pytest.mark.asyncio
    async def test_read_through_order_details(self, user_cache):
        fetch = CountingFetch({"id": 9001, "total": 2500})

        first = await user_cache.order_details(42, 9001, fetch)
        await user_cache.cache.background.drain()
        second = await user_cache.order_details(42, 9001, fetch)

        assert first.key == "user:order:42:9001"
        assert second.status == CacheStatus.HIT
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_clear_all_user_cache_only_touches_that_user(self, user_cache):
        await user_cache.set_profile(42, {"name": "Ada"})
        await user_cache.set_cart(42, {"items": []})
        await user_cache.set_order_details(42, 7, {"id": 7})
        await user_cache.set_profile(43, {"name": "Grace"})

        report = await user_cache.clear_all_user_cache(42)

        assert sorted(report.deleted_keys) == ["cart:42", "user:order:42:7", "user:profile:42"]
        assert await user_cache.get_profile(43) is not None

    @pytest.mark.asyncio
    async def test_wildcard_user_id_clears_nobody_else(self, user_cache):
        await user_cache.set_profile(42, {"name": "Ada"})
        await user_cache.set_profile(43, {"name": "Grace"})

        report = await user_cache.clear_all_user_cache("*")

        assert report.deleted_keys == []
        assert await user_cache.get_profile(42) is not None
        assert await user_cache.get_profile(43) is not None

    @pytest.mark.asyncio
    async def test_user_cache_stats(self, user_cache, fake_clock):
        await user_cache.set_wishlist(42, [{"product_id": 5}])
        fake_clock.advance(100)

        stats = await user_cache.get_user_cache_stats(42)

        assert stats["wishlist"] == {"exists": True, "keys": 1, "ttl": 1700.0, "stale": False}
        assert stats["profile"] == {"exists": False, "keys": 0, "ttl": -1, "stale": False}

    @pytest.mark.asyncio
    async def test_debug_keys(self, user_cache):
        keys = user_cache.debug_keys(42)

        assert keys == {
            "wishlist": "user:wishlist:42",
            "orders_default": "user:orders:42:list:default",
            "profile": "user:profile:42",
            "addresses": "user:addresses:42",
            "cart": "cart:42",
        }


@pytest.mark.unit
class TestCatalogCache:
    @pytest.mark.asyncio
    async def test_short_query_short_circuits(self, catalog_cache):
        fetch = CountingFetch({"suggestions": ["bear"]})

        result = await catalog_cache.search_suggestions(" b ", fetch)

        assert result.data == {"suggestions": []}
        assert fetch.calls == 0

    @pytest.mark.asyncio
    async def test_equivalent_queries_share_an_entry(self, catalog_cache):
        fetch = CountingFetch({"suggestions": ["soft toys"]})

        await catalog_cache.search_suggestions("Soft Toys", fetch)
        await catalog_cache.cache.background.drain()
        result = await catalog_cache.search_suggestions("  soft toys ", fetch)

        assert result.status == CacheStatus.HIT
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_product_list_defaults_to_limit_100(self, catalog_cache):
        result = await catalog_cache.product_list(None, CountingFetch([]))
        assert result.key == "products:list:100"

    @pytest.mark.asyncio
    async def test_ratings_keys(self, catalog_cache):
        all_ratings = await catalog_cache.ratings(CountingFetch([]))
        one_product = await catalog_cache.ratings(CountingFetch({"average": 4.5}), product_id=5)

        assert all_ratings.key == "ratings:all"
        assert one_product.key == "ratings:product:5"
