"""
Error Handling Middleware - Educational Documentation
======================================================

WHAT IS CENTRALIZED ERROR HANDLING?
------------------------------------
Known errors (StorefrontCacheError subclasses) are mapped to HTTP responses
by FastAPI exception handlers registered in app.py. This middleware is the
last line of defense for everything else: any exception that escapes a route
handler becomes a generic JSON 500 instead of a dropped connection.

WHAT REACHES THIS MIDDLEWARE?
-----------------------------
Cache failures never do: the cache layer turns them into misses. What can
reach it is an origin error a route did not translate, or a bug.

SECURITY CONSIDERATION:
-----------------------
Tracebacks are only included in development. Production responses carry the
error type and the request id for correlation, nothing else.
"""

import traceback
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront_cache.core.config.constants import HEADER_REQUEST_ID
from storefront_cache.core.logging.logger import get_logger, get_request_id
from storefront_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Catch-all for exceptions no route or exception handler dealt with.
    """

    def __init__(self, app, include_traceback: bool = False):
        """
        Args:
            app: The ASGI application
            include_traceback: Whether to include stack traces in error responses
                              (False outside development)
        """
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            method = request.method
            path = request.url.path
            error_type = type(e).__name__

            logger.error(
                f"Unhandled exception in request: {method} {path}",
                method=method,
                path=path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            get_metrics_collector().record_error(error_type, "unhandled_exception")

            error_response = {
                "error": "internal_server_error",
                "message": "An unexpected error occurred while processing your request",
                "error_type": error_type,
            }

            if self.include_traceback:
                error_response["traceback"] = traceback.format_exc()
                error_response["detail"] = str(e)

            request_id = get_request_id()
            headers = {HEADER_REQUEST_ID: request_id} if request_id else None
            return JSONResponse(status_code=500, content=error_response, headers=headers)


def add_error_handling_middleware(app, include_traceback: bool = False):
    """
    Register the error handling middleware.

    Register it LAST so it wraps every other middleware (Starlette runs
    middleware in reverse order of registration).
    """
    app.add_middleware(ErrorHandlingMiddleware, include_traceback=include_traceback)
    logger.info("Error handling middleware registered", include_traceback=include_traceback)
