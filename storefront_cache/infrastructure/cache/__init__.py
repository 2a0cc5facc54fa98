"""
Cache Module

Read-through caching over a shared KV store (Redis), with a process-local
micro-cache in front of reference-data option lists.
"""

from .cache_manager import (
    CacheManager,
    CacheResult,
    InvalidationReport,
)
from .cache_service import CatalogCacheService, OptionsCacheService, UserCacheService
from .invalidation import CacheInvalidator
from .keys import build_cache_key, user_key_patterns
from .micro_cache import MicroCache, get_micro_cache, reset_micro_cache
from .warmer import CacheWarmer, WarmReport

__all__ = [
    "CacheManager",
    "CacheResult",
    "InvalidationReport",
    "UserCacheService",
    "CatalogCacheService",
    "OptionsCacheService",
    "CacheInvalidator",
    "CacheWarmer",
    "WarmReport",
    "MicroCache",
    "get_micro_cache",
    "reset_micro_cache",
    "build_cache_key",
    "user_key_patterns",
]
