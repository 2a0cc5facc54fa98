"""
Core Module

Foundational components: configuration, logging, exceptions and resilience.
"""

from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
    CacheUnavailableError,
    ConfigurationError,
    StorefrontCacheError,
)
from .logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)

__all__ = [
    "CacheConnectionError",
    "CacheError",
    "CacheKeyError",
    "CacheSerializationError",
    "CacheTimeoutError",
    "CacheUnavailableError",
    "ConfigurationError",
    "StorefrontCacheError",
    "clear_request_id",
    "get_logger",
    "get_request_id",
    "log_stage",
    "set_request_id",
    "setup_logging",
]
