"""
Middleware Package
==================

AVAILABLE MIDDLEWARE:
---------------------
1. request_logging: request id propagation and request/response logging
2. error_handler: catch-all JSON 500 for unhandled exceptions

MIDDLEWARE ORDERING:
--------------------
Starlette runs middleware in reverse order of registration, so the error
handler is registered last to wrap everything else:

Request flow:  Client → ErrorHandling → RequestLogging → CORS → Handler
"""

from fastapi import FastAPI

from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.logging.logger import get_logger

from .error_handler import add_error_handling_middleware
from .request_logging import add_request_logging_middleware

logger = get_logger(__name__)


def setup_middleware(app: FastAPI):
    """
    Register the middleware stack in the correct order.

    Args:
        app: FastAPI application instance
    """
    settings = get_settings()

    add_request_logging_middleware(app, log_level=settings.logging.LOG_LEVEL)

    # Registered last: outermost, catches errors from everything above
    add_error_handling_middleware(
        app, include_traceback=(settings.app.ENVIRONMENT == "development")
    )


__all__ = [
    "setup_middleware",
    "add_error_handling_middleware",
    "add_request_logging_middleware",
]
