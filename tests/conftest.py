"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest

from storefront_cache.core.config.settings import reload_settings
from storefront_cache.core.interfaces.cache import InMemoryKeyValueStore
from storefront_cache.core.resilience.circuit_breaker import KVCircuitBreaker
from storefront_cache.infrastructure.cache.cache_manager import CacheManager
from storefront_cache.infrastructure.cache.micro_cache import MicroCache, reset_micro_cache
from storefront_cache.infrastructure.monitoring.cache_monitor import (
    CacheMonitor,
    reset_cache_monitor,
)

# ============================================================================
# Global State
# ============================================================================


@pytest.fixture(autouse=True)
def _fresh_process_state():
    """
    Every test starts from default settings and empty process singletons.

    Tests that change settings through monkeypatch.setenv call
    reload_settings() themselves; the reload after the test undoes it.
    """
    reload_settings()
    reset_micro_cache()
    reset_cache_monitor()
    yield
    reload_settings()
    reset_micro_cache()
    reset_cache_monitor()


# ============================================================================
# Time
# ============================================================================


class FakeClock:
    """Wall clock that only moves when a test says so."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# ============================================================================
# Cache Infrastructure
# ============================================================================


@pytest.fixture
def kv_store(fake_clock):
    """In-memory KV store expiring keys against the fake clock."""
    return InMemoryKeyValueStore(clock=fake_clock)


@pytest.fixture
def breaker(fake_clock):
    return KVCircuitBreaker(name="test-kv", failure_threshold=3, recovery_timeout=10.0, clock=fake_clock)


@pytest.fixture
def monitor(fake_clock):
    return CacheMonitor(clock=fake_clock)


@pytest.fixture
async def cache_manager(kv_store, breaker, monitor, fake_clock):
    """
    CacheManager over the in-memory store, with fake time everywhere.

    Teardown cancels whatever background work is still pending instead of
    waiting for it.
    """
    manager = CacheManager(kv_store, monitor=monitor, breaker=breaker, clock=fake_clock)
    yield manager
    await manager.shutdown(timeout=0)


@pytest.fixture
def micro_cache(fake_clock):
    return MicroCache(ttl_ms=120_000, clock=fake_clock)


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def size_options():
    return [
        {"id": 1, "name": "Small", "slug": "s", "display_order": 1},
        {"id": 2, "name": "Medium", "slug": "m", "display_order": 2},
        {"id": 3, "name": "Large", "slug": "l", "display_order": 3},
    ]


@pytest.fixture
def category_options():
    return [
        {"id": 10, "name": "Soft Toys", "slug": "soft-toys"},
        {"id": 11, "name": "Puzzles", "slug": "puzzles"},
    ]
