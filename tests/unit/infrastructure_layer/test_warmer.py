"""
Unit Tests for Cache Warming
"""

import pytest

from storefront_cache.core.config.constants import CacheDomain
from storefront_cache.infrastructure.cache.cache_manager import CacheManager
from storefront_cache.infrastructure.cache.cache_service import OptionsCacheService
from storefront_cache.infrastructure.cache.warmer import CacheWarmer
from tests.test_fixtures import CountingFetch, RefusingStore


@pytest.fixture
def options_cache(cache_manager, micro_cache):
    return OptionsCacheService(cache_manager, micro_cache)


@pytest.mark.unit
class TestCacheWarmer:
    @pytest.mark.asyncio
    async def test_warms_every_configured_domain(self, options_cache, kv_store, size_options, category_options):
        warmer = CacheWarmer(
            options_cache,
            {
                CacheDomain.SIZE_OPTIONS: CountingFetch(size_options),
                CacheDomain.CATEGORY_OPTIONS: CountingFetch(category_options),
            },
        )

        report = await warmer.warm()

        assert report.ok
        assert sorted(report.warmed) == ["categories:options", "sizes:options"]
        assert await kv_store.get("sizes:options") is not None
        assert options_cache.micro_cache.lookup(CacheDomain.SIZE_OPTIONS) is not None

    @pytest.mark.asyncio
    async def test_unconfigured_domains_are_skipped(self, options_cache, size_options):
        ages = CountingFetch(size_options)
        warmer = CacheWarmer(options_cache, {CacheDomain.SIZE_OPTIONS: None, CacheDomain.AGE_OPTIONS: ages})

        report = await warmer.warm()

        assert report.warmed == ["ages:options"]
        assert report.errors == {}
        assert ages.calls == 1

    @pytest.mark.asyncio
    async def test_one_failing_origin_does_not_stop_the_others(self, options_cache, size_options):
        warmer = CacheWarmer(
            options_cache,
            {
                CacheDomain.SIZE_OPTIONS: CountingFetch(size_options),
                CacheDomain.GENDER_OPTIONS: CountingFetch(error=RuntimeError("gender table missing")),
            },
        )

        report = await warmer.warm()

        assert not report.ok
        assert report.warmed == ["sizes:options"]
        assert report.errors == {"gender_options": "gender table missing"}

    @pytest.mark.asyncio
    async def test_refused_write_is_an_error(self, options_cache, kv_store, size_options):
        kv_store.fail_with = ConnectionError("down")
        warmer = CacheWarmer(options_cache, {CacheDomain.SIZE_OPTIONS: CountingFetch(size_options)})

        report = await warmer.warm()

        assert report.errors == {"size_options": "not written to cache"}

    @pytest.mark.asyncio
    async def test_store_answering_false_is_an_error(
        self, breaker, monitor, micro_cache, fake_clock, size_options
    ):
        manager = CacheManager(RefusingStore(clock=fake_clock), monitor=monitor, breaker=breaker, clock=fake_clock)
        warmer = CacheWarmer(
            OptionsCacheService(manager, micro_cache), {CacheDomain.SIZE_OPTIONS: CountingFetch(size_options)}
        )

        report = await warmer.warm()

        assert not report.ok
        assert report.warmed == []
        assert report.errors == {"size_options": "not written to cache"}

    @pytest.mark.asyncio
    async def test_report_dict(self, options_cache, size_options):
        warmer = CacheWarmer(options_cache, {CacheDomain.SIZE_OPTIONS: CountingFetch(size_options)})

        payload = (await warmer.warm()).to_dict()

        assert payload["success"] is True
        assert payload["warmed"] == 1
        assert payload["keys_preview"] == ["sizes:options"]
        assert payload["errors"] == {}
