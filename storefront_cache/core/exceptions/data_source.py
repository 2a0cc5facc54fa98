"""
Data Source Exceptions

The origin store is an external collaborator; its own exceptions propagate
unchanged through the cache layer. The only error defined here is for a
route whose origin fetch was never wired in.
"""

from storefront_cache.core.exceptions.base import StorefrontCacheError


class DataSourceNotConfiguredError(StorefrontCacheError):
    """Raised when no origin fetch is registered for a cache domain."""

    status_code = 503
