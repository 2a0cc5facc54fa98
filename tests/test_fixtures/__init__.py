"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import CacheTestFactory, CountingFetch, RefusingStore

__all__ = ["CacheTestFactory", "CountingFetch", "RefusingStore"]
