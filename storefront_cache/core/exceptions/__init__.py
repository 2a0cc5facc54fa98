"""
Exception Module

Structured exception hierarchy for the storefront cache layer.

Module Structure:
-----------------
- **base.py**: StorefrontCacheError base class + ConfigurationError
- **cache.py**: KV store, codec and circuit exceptions
- **data_source.py**: Origin wiring exceptions
- **validation.py**: Request validation exceptions

Usage:
------
```python
from storefront_cache.core.exceptions import CacheKeyError, ConfirmationRequiredError
```
"""

from storefront_cache.core.exceptions.base import ConfigurationError, StorefrontCacheError
from storefront_cache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
    CacheUnavailableError,
)
from storefront_cache.core.exceptions.data_source import DataSourceNotConfiguredError
from storefront_cache.core.exceptions.validation import ConfirmationRequiredError, ValidationError

__all__ = [
    # Base
    "StorefrontCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheTimeoutError",
    "CacheSerializationError",
    "CacheUnavailableError",
    # Data source
    "DataSourceNotConfiguredError",
    # Validation
    "ValidationError",
    "ConfirmationRequiredError",
]
