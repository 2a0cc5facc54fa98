"""
Unit Tests for the Process-Local Micro-Cache
"""

import pytest

from storefront_cache.core.config.constants import CacheDomain
from storefront_cache.infrastructure.cache.micro_cache import (
    MicroCache,
    get_micro_cache,
    reset_micro_cache,
)


@pytest.mark.unit
class TestMicroCache:
    def test_empty_lookup(self, micro_cache):
        assert micro_cache.lookup(CacheDomain.SIZE_OPTIONS) is None

    def test_record_served_within_ttl(self, micro_cache, fake_clock, size_options):
        micro_cache.store(CacheDomain.SIZE_OPTIONS, size_options)
        fake_clock.advance(119.9)

        record = micro_cache.lookup(CacheDomain.SIZE_OPTIONS)

        assert record is not None
        assert record.data == size_options

    def test_record_ignored_at_ttl(self, micro_cache, fake_clock, size_options):
        micro_cache.store(CacheDomain.SIZE_OPTIONS, size_options)
        fake_clock.advance(120)

        assert micro_cache.lookup(CacheDomain.SIZE_OPTIONS) is None

    def test_store_overwrites_and_restamps(self, micro_cache, fake_clock):
        micro_cache.store(CacheDomain.AGE_OPTIONS, [{"id": 1, "name": "0-2"}])
        fake_clock.advance(100)
        micro_cache.store(CacheDomain.AGE_OPTIONS, [{"id": 2, "name": "3-5"}])
        fake_clock.advance(100)

        record = micro_cache.lookup(CacheDomain.AGE_OPTIONS)
        assert record.data == [{"id": 2, "name": "3-5"}]

    def test_domains_are_independent(self, micro_cache, size_options):
        micro_cache.store(CacheDomain.SIZE_OPTIONS, size_options)
        assert micro_cache.lookup(CacheDomain.GENDER_OPTIONS) is None

    def test_only_reference_domains_are_accepted(self, micro_cache):
        with pytest.raises(ValueError):
            micro_cache.store(CacheDomain.CATEGORY_OPTIONS, [])

    def test_snapshot(self, micro_cache, fake_clock, size_options):
        micro_cache.store(CacheDomain.SIZE_OPTIONS, size_options)
        fake_clock.advance(1)
        assert micro_cache.snapshot() == {"size_options": {"age_ms": 1000.0, "fresh": True}}

    def test_ttl_defaults_from_settings(self):
        assert MicroCache().ttl_ms == 120_000


@pytest.mark.unit
class TestSingleton:
    def test_process_singleton(self):
        assert get_micro_cache() is get_micro_cache()

    def test_reset_starts_empty(self, size_options):
        get_micro_cache().store(CacheDomain.SIZE_OPTIONS, size_options)
        reset_micro_cache()
        assert get_micro_cache().lookup(CacheDomain.SIZE_OPTIONS) is None
