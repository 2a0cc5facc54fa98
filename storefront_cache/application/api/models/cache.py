"""
Cache API Response Models
=========================

Pydantic models for the endpoints whose response shape is a contract
(health probes, cache warming, option-list errors). Debug endpoints return
plain dicts: their shape follows whatever the store holds.
"""

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health probe response."""

    status: str = Field(..., description="healthy | degraded | unhealthy | ready | not_ready")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    components: dict[str, Any] | None = Field(default=None, description="Per-component status")


class WarmResponse(BaseModel):
    """Result of POST /cache/warm."""

    success: bool
    message: str
    timestamp: str
    warmed: int = Field(..., ge=0, description="Number of keys written")
    keys_preview: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict, description="Error text per failed domain")


class ErrorResponse(BaseModel):
    """Error body of the public option-list endpoints."""

    error: str
