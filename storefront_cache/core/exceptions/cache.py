"""
Cache-Related Exceptions

All exceptions related to caching operations (Redis, entry codec, circuit).
None of these ever reach an end user of a read-through call: the cache
manager converts them into a miss.
"""

from storefront_cache.core.exceptions.base import StorefrontCacheError


class CacheError(StorefrontCacheError):
    """Base exception for cache-related errors."""

    status_code = 503


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the KV store (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key operation fails.

    Common causes:
    - Invalid key (missing user scope)
    - Server-side error on GET/SET/DEL/SCAN
    - Memory limit exceeded
    """
    pass


class CacheTimeoutError(CacheError):
    """Raised when a KV call does not settle within its bounded wait."""
    pass


class CacheSerializationError(CacheError):
    """
    Raised when a cached value cannot be trusted.

    Common causes:
    - Value is not JSON (an HTML error page, a truncated write)
    - Value predates the tagged entry envelope
    - Payload shape does not match its domain
    """
    pass


class CacheUnavailableError(CacheError):
    """Raised when the KV circuit is open and the call was skipped."""
    pass
