"""
Configuration Module

Centralized, type-safe configuration for the storefront cache layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Cache domains, key prefixes, default TTLs and header names

Usage:
------
```python
from storefront_cache.core.config import get_settings
from storefront_cache.core.config.constants import CacheDomain, CacheStatus

settings = get_settings()
timeout_ms = settings.cache.CACHE_READ_TIMEOUT_MS
```
"""

from storefront_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
