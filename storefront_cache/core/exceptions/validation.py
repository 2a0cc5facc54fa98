"""
Validation Exceptions

Exceptions raised when an operator or route request is not acceptable.
"""

from storefront_cache.core.exceptions.base import StorefrontCacheError


class ValidationError(StorefrontCacheError):
    """Base class for request validation errors."""

    status_code = 400


class ConfirmationRequiredError(ValidationError):
    """
    Raised when a destructive bulk operation is requested without confirm=true.

    Bulk deletes are rejected rather than silently ignored.
    """
    pass
