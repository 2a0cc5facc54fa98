"""
API Models Package
==================

Pydantic response models for the HTTP surface.
"""

from storefront_cache.application.api.models.cache import ErrorResponse, HealthResponse, WarmResponse

__all__ = ["ErrorResponse", "HealthResponse", "WarmResponse"]
