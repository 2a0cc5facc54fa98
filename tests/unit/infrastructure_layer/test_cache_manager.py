"""
Unit Tests for CacheManager

Tests the read-through path (hit, miss, stale-while-revalidate), the bounded
KV read, failure handling, write-back and the circuit breaker integration.
"""

import time

import pytest

from storefront_cache.core.config.constants import CacheDomain, CacheStatus, CircuitState, DataSource
from storefront_cache.core.config.settings import reload_settings
from storefront_cache.core.exceptions import CacheKeyError
from storefront_cache.core.interfaces.cache import InMemoryKeyValueStore
from storefront_cache.infrastructure.cache.cache_manager import CacheManager, CacheResult
from storefront_cache.infrastructure.monitoring.cache_monitor import CacheMonitor, get_cache_monitor
from tests.test_fixtures import CacheTestFactory, CountingFetch, RefusingStore

PRODUCT = {"id": 5, "name": "Plush Bear", "price": 1999}


@pytest.mark.unit
class TestReadThrough:
    """Miss, write-back, then hit."""

    @pytest.mark.asyncio
    async def test_miss_fetches_from_origin(self, cache_manager):
        fetch = CountingFetch(PRODUCT)

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)

        assert result.data == PRODUCT
        assert result.status == CacheStatus.MISS
        assert result.source == DataSource.DATABASE
        assert result.key == "product:5"
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_write_back_makes_next_read_a_hit(self, cache_manager):
        fetch = CountingFetch(PRODUCT)

        await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)
        await cache_manager.background.drain()
        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)

        assert result.status == CacheStatus.HIT
        assert result.source == DataSource.REDIS_CACHE
        assert result.data == PRODUCT
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_write_back_uses_domain_ttl(self, cache_manager, kv_store):
        await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)
        await cache_manager.background.drain()

        assert kv_store.ttl_of("product:5") == pytest.approx(1800)

    @pytest.mark.asyncio
    async def test_explicit_ttl_wins(self, cache_manager, kv_store):
        await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5, ttl=60)
        await cache_manager.background.drain()

        assert kv_store.ttl_of("product:5") == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, cache_manager, kv_store):
        fetch = CountingFetch(None)

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=404)
        await cache_manager.background.drain()
        await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=404)

        assert result.data is None
        assert fetch.calls == 2
        assert await kv_store.keys() == []

    @pytest.mark.asyncio
    async def test_empty_list_is_cached(self, cache_manager):
        fetch = CountingFetch([])

        await cache_manager.get_or_compute(CacheDomain.WISHLIST, fetch, scope=42)
        await cache_manager.background.drain()
        result = await cache_manager.get_or_compute(CacheDomain.WISHLIST, fetch, scope=42)

        assert result.status == CacheStatus.HIT
        assert result.data == []
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_origin_error_propagates_unchanged(self, cache_manager):
        error = LookupError("origin down")

        with pytest.raises(LookupError) as exc_info:
            await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(error=error), scope=5)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_result_headers(self, cache_manager):
        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)

        assert result.headers() == {"X-Cache-Status": "MISS", "X-Data-Source": "SUPABASE_DATABASE"}
        assert result.headers("public, s-maxage=120")["Cache-Control"] == "public, s-maxage=120"


@pytest.mark.unit
class TestStaleWhileRevalidate:
    """Entries past the freshness threshold are served, then refreshed."""

    @pytest.mark.asyncio
    async def test_fresh_entry_is_a_hit(self, cache_manager, kv_store, fake_clock):
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.PRODUCT, PRODUCT, fake_clock(), scope=5, ttl=100)
        fake_clock.advance(49)
        fetch = CountingFetch({"id": 5, "name": "New"})

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)

        assert result.status == CacheStatus.HIT
        assert fetch.calls == 0

    @pytest.mark.asyncio
    async def test_stale_entry_is_served_then_refreshed(self, cache_manager, kv_store, fake_clock):
        written_at = fake_clock()
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.PRODUCT, PRODUCT, written_at, scope=5, ttl=100)
        fake_clock.advance(60)
        fresh = {"id": 5, "name": "Plush Bear XL"}
        fetch = CountingFetch(fresh)

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5, ttl=100)

        assert result.status == CacheStatus.STALE
        assert result.is_stale
        assert result.data == PRODUCT
        assert result.cached_at == written_at

        await cache_manager.background.drain()
        assert fetch.calls == 1
        refreshed = await cache_manager.get(CacheDomain.PRODUCT, 5)
        assert refreshed.data == fresh
        assert refreshed.status == CacheStatus.HIT

    @pytest.mark.asyncio
    async def test_concurrent_stale_reads_refresh_once(self, cache_manager, kv_store, fake_clock):
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.PRODUCT, PRODUCT, fake_clock(), scope=5, ttl=100)
        fake_clock.advance(60)
        fetch = CountingFetch(PRODUCT, delay=0.05)

        first = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)
        second = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)
        await cache_manager.background.drain()

        assert first.status == second.status == CacheStatus.STALE
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_stale_entry(self, cache_manager, kv_store, fake_clock):
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.PRODUCT, PRODUCT, fake_clock(), scope=5, ttl=100)
        fake_clock.advance(60)

        result = await cache_manager.get_or_compute(
            CacheDomain.PRODUCT, CountingFetch(error=RuntimeError("origin down")), scope=5
        )
        await cache_manager.background.drain()

        assert result.data == PRODUCT
        again = await cache_manager.get(CacheDomain.PRODUCT, 5)
        assert again.data == PRODUCT

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self, cache_manager, kv_store, fake_clock):
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.PRODUCT, PRODUCT, fake_clock(), scope=5, ttl=100)
        fake_clock.advance(100)
        fetch = CountingFetch(PRODUCT)

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)

        assert result.status == CacheStatus.MISS
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_envelope_age_is_checked_without_store_ttl(self, cache_manager, kv_store, fake_clock):
        """An entry the store kept longer than its envelope TTL is still a miss."""
        from storefront_cache.infrastructure.cache.codec import encode_entry

        await kv_store.set("product:5", encode_entry(PRODUCT, 100, fake_clock()))
        fake_clock.advance(150)

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)

        assert result.status == CacheStatus.MISS


@pytest.mark.unit
class TestKVFailures:
    """A slow or broken KV store is a miss, never an error."""

    @pytest.mark.asyncio
    async def test_slow_read_is_abandoned_after_timeout(self, fake_clock, monitor):
        slow_store = InMemoryKeyValueStore(clock=fake_clock, delay=5.0)
        manager = CacheManager(slow_store, monitor=monitor, clock=fake_clock)
        fetch = CountingFetch(PRODUCT)

        start = time.perf_counter()
        result = await manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5, timeout_ms=300)
        elapsed = time.perf_counter() - start

        assert result.status == CacheStatus.MISS
        assert result.data == PRODUCT
        assert fetch.calls == 1
        assert elapsed < 1.0
        await manager.shutdown(timeout=0)

    @pytest.mark.asyncio
    async def test_store_error_is_a_miss(self, cache_manager, kv_store):
        kv_store.fail_with = ConnectionError("connection refused")

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)

        assert result.status == CacheStatus.MISS
        assert result.data == PRODUCT

    @pytest.mark.asyncio
    async def test_failed_write_back_does_not_fail_request(self, cache_manager, kv_store):
        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)
        kv_store.fail_with = ConnectionError("connection reset")
        await cache_manager.background.drain()

        assert result.data == PRODUCT
        assert cache_manager.background.pending == 0

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_a_miss(self, cache_manager, kv_store):
        await kv_store.set("sizes:options", "<html>oops</html>")
        fetch = CountingFetch([{"id": 1, "name": "Small"}])

        result = await cache_manager.get_or_compute(CacheDomain.SIZE_OPTIONS, fetch)

        assert result.status == CacheStatus.MISS
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_wrong_shape_is_a_miss(self, cache_manager, kv_store, fake_clock):
        # An option list domain holding an object
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.SIZE_OPTIONS, {"id": 1}, fake_clock())
        fetch = CountingFetch([{"id": 1, "name": "Small"}])

        result = await cache_manager.get_or_compute(CacheDomain.SIZE_OPTIONS, fetch)

        assert result.status == CacheStatus.MISS
        assert result.data == [{"id": 1, "name": "Small"}]

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_overwritten(self, cache_manager, kv_store):
        await kv_store.set("sizes:options", "not json")
        options = [{"id": 1, "name": "Small"}]

        await cache_manager.get_or_compute(CacheDomain.SIZE_OPTIONS, CountingFetch(options))
        await cache_manager.background.drain()

        assert (await cache_manager.get(CacheDomain.SIZE_OPTIONS)).data == options


@pytest.mark.unit
class TestCircuitBreakerIntegration:
    @pytest.mark.asyncio
    async def test_repeated_failures_open_circuit(self, cache_manager, kv_store):
        kv_store.fail_with = ConnectionError("down")

        for _ in range(3):
            await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)

        assert cache_manager.breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_skips_store(self, cache_manager, kv_store):
        kv_store.fail_with = ConnectionError("down")
        for _ in range(3):
            await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)
        failures = cache_manager.breaker.failures

        result = await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)
        await cache_manager.background.drain()

        assert result.status == CacheStatus.MISS
        assert cache_manager.breaker.failures == failures

    @pytest.mark.asyncio
    async def test_circuit_recovers_after_timeout(self, cache_manager, kv_store, fake_clock):
        kv_store.fail_with = ConnectionError("down")
        for _ in range(3):
            await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)
        await cache_manager.background.drain()

        kv_store.fail_with = None
        fake_clock.advance(10)
        await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)

        assert cache_manager.breaker.state == CircuitState.CLOSED


@pytest.mark.unit
class TestDisabledCaching:
    @pytest.mark.asyncio
    async def test_every_read_goes_to_origin(self, monkeypatch, kv_store, monitor, fake_clock):
        monkeypatch.setenv("ENABLE_CACHING", "false")
        manager = CacheManager(kv_store, monitor=monitor, clock=fake_clock, settings=reload_settings())
        fetch = CountingFetch(PRODUCT)

        first = await manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)
        await manager.background.drain()
        second = await manager.get_or_compute(CacheDomain.PRODUCT, fetch, scope=5)

        assert first.status == second.status == CacheStatus.MISS
        assert fetch.calls == 2
        assert await kv_store.keys() == []
        assert await manager.set(CacheDomain.PRODUCT, PRODUCT, 5) is False


@pytest.mark.unit
class TestTtlPolicy:
    @pytest.mark.asyncio
    async def test_domain_default(self, cache_manager):
        assert cache_manager.ttl_for(CacheDomain.SIZE_OPTIONS) == 7200

    def test_override_from_settings(self, monkeypatch, kv_store, monitor):
        monkeypatch.setenv("CACHE_TTL_OVERRIDES", '{"product": 900}')
        manager = CacheManager(kv_store, monitor=monitor, settings=reload_settings())

        assert manager.ttl_for(CacheDomain.PRODUCT) == 900
        assert manager.ttl_for(CacheDomain.PRODUCT_LIST) == 1800

    @pytest.mark.asyncio
    async def test_freshness_threshold(self, cache_manager):
        assert cache_manager.fresh_for(7200) == 3600


@pytest.mark.unit
class TestDirectAccess:
    @pytest.mark.asyncio
    async def test_set_then_get(self, cache_manager):
        assert await cache_manager.set(CacheDomain.CART, {"items": [1, 2]}, "u1") is True

        result = await cache_manager.get(CacheDomain.CART, "u1")

        assert isinstance(result, CacheResult)
        assert result.data == {"items": [1, 2]}
        assert result.key == "cart:u1"

    @pytest.mark.asyncio
    async def test_get_miss_returns_none(self, cache_manager):
        assert await cache_manager.get(CacheDomain.CART, "nobody") is None

    @pytest.mark.asyncio
    async def test_set_failure_returns_false(self, cache_manager, kv_store):
        kv_store.fail_with = ConnectionError("down")
        assert await cache_manager.set(CacheDomain.CART, {"items": []}, "u1") is False

    @pytest.mark.asyncio
    async def test_refused_write_returns_false(self, breaker, monitor, fake_clock):
        store = RefusingStore(clock=fake_clock)
        manager = CacheManager(store, monitor=monitor, breaker=breaker, clock=fake_clock)

        assert await manager.set(CacheDomain.CART, {"items": []}, "u1") is False
        assert await store.get("cart:u1") is None

        last = monitor.records[-1]
        assert (last.operation.value, last.hit) == ("SET", False)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_delete_counts_existing_keys(self, cache_manager):
        await cache_manager.set(CacheDomain.CART, {"items": []}, "u1")

        assert await cache_manager.delete("cart:u1", "cart:u2") == 1
        assert await cache_manager.get(CacheDomain.CART, "u1") is None

    @pytest.mark.asyncio
    async def test_delete_failure_raises_cache_error(self, cache_manager, kv_store):
        kv_store.fail_with = ConnectionError("down")
        with pytest.raises(CacheKeyError):
            await cache_manager.delete("cart:u1")

    @pytest.mark.asyncio
    async def test_delete_pattern_reports_keys(self, cache_manager):
        await cache_manager.set(CacheDomain.ORDERS, [], 42, "list:default")
        await cache_manager.set(CacheDomain.ORDERS, [], 42, "list:status=paid")
        await cache_manager.set(CacheDomain.ORDERS, [], 43, "list:default")

        report = await cache_manager.delete_pattern("user:orders:42:*")

        assert sorted(report.deleted_keys) == ["user:orders:42:list:default", "user:orders:42:list:status=paid"]
        assert report.errors == []
        assert await cache_manager.keys("user:orders:*") == ["user:orders:43:list:default"]

    @pytest.mark.asyncio
    async def test_delete_pattern_collects_errors(self, cache_manager, kv_store):
        kv_store.fail_with = ConnectionError("down")

        report = await cache_manager.delete_pattern("user:orders:42:*")

        assert report.count == 0
        assert report.errors[0]["pattern"] == "user:orders:42:*"


@pytest.mark.unit
class TestEntryInfo:
    @pytest.mark.asyncio
    async def test_describes_valid_entry(self, cache_manager, kv_store, fake_clock):
        await CacheTestFactory.seed_entry(kv_store, CacheDomain.PRODUCT, PRODUCT, fake_clock(), scope=5, ttl=100)
        fake_clock.advance(60)

        info = await cache_manager.entry_info("product:5")

        assert info["exists"] is True
        assert info["valid"] is True
        assert info["domain"] == "product"
        assert info["age_seconds"] == 60.0
        assert info["ttl_remaining"] == 40.0
        assert info["stale"] is True
        assert info["expired"] is False
        assert info["value"] == PRODUCT

    @pytest.mark.asyncio
    async def test_missing_key(self, cache_manager):
        assert await cache_manager.entry_info("product:404") == {"key": "product:404", "exists": False}

    @pytest.mark.asyncio
    async def test_unreadable_value(self, cache_manager, kv_store):
        await kv_store.set("product:5", "garbage")

        info = await cache_manager.entry_info("product:5")

        assert info["exists"] is True
        assert info["valid"] is False
        assert "error" in info


@pytest.mark.unit
class TestMonitoringHooks:
    @pytest.mark.asyncio
    async def test_reads_and_writes_are_recorded(self, cache_manager, monitor):
        await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)
        await cache_manager.background.drain()
        await cache_manager.get_or_compute(CacheDomain.PRODUCT, CountingFetch(PRODUCT), scope=5)

        operations = [(r.operation.value, r.hit) for r in monitor.records]
        assert operations == [("GET", False), ("SET", True), ("GET", True)]

    @pytest.mark.asyncio
    async def test_stats_include_circuit_and_backlog(self, cache_manager):
        stats = cache_manager.stats()

        assert stats["circuit"]["state"] == "closed"
        assert stats["pending_background_tasks"] == 0
        assert stats["caching_enabled"] is True

    @pytest.mark.asyncio
    async def test_health_is_degraded_when_store_fails(self, cache_manager, kv_store):
        assert (await cache_manager.health_check())["status"] == "healthy"

        kv_store.fail_with = ConnectionError("down")

        health = await cache_manager.health_check()
        assert health["status"] == "degraded"
        assert health["kv"]["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_empty_injected_monitor_is_kept(self, kv_store, fake_clock):
        own = CacheMonitor(clock=fake_clock)
        assert len(own) == 0

        manager = CacheManager(kv_store, monitor=own, clock=fake_clock)
        await manager.set(CacheDomain.CART, {"items": []}, "u1")

        assert manager.monitor is own
        assert len(own) == 1
        assert len(get_cache_monitor()) == 0
