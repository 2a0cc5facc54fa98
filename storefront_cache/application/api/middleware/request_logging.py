"""
Request Logging Middleware - Educational Documentation
======================================================

WHAT DOES THIS MIDDLEWARE DO?
-----------------------------
For every HTTP request it:
1. Reads X-Request-ID from the client, or generates one
2. Stores it in the logging ContextVar so every log line of the request
   (and every background write-back spawned by it) carries the same id
3. Logs the request and its outcome, including the cache status headers
   set by the route, so hit/miss/stale is searchable in the logs
4. Echoes X-Request-ID on the response

WHAT IS NOT LOGGED:
-------------------
- Request/response bodies
- Sensitive headers (replaced by "[REDACTED]")
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from storefront_cache.core.config.constants import (
    HEADER_CACHE_STATUS,
    HEADER_DATA_SOURCE,
    HEADER_REQUEST_ID,
)
from storefront_cache.core.logging.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)


# Headers that contain sensitive information and should not be logged
SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "x-api-key",
    "x-auth-token",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request id propagation plus request/response logging.
    """

    def __init__(self, app, log_level: str = "INFO"):
        super().__init__(app)
        self.log_level = log_level.upper()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        logger.debug(
            f"Incoming request: {method} {path}",
            method=method,
            path=path,
            query_params=str(request.query_params) if request.query_params else None,
            headers=self._sanitize_headers(dict(request.headers)),
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            logger.info(
                f"Request completed: {method} {path}",
                method=method,
                path=path,
                status_code=response.status_code,
                cache_status=response.headers.get(HEADER_CACHE_STATUS),
                data_source=response.headers.get(HEADER_DATA_SOURCE),
                duration_seconds=round(time.perf_counter() - start_time, 4),
            )

            response.headers[HEADER_REQUEST_ID] = request_id
            return response

        except Exception as e:
            logger.error(
                f"Request failed: {method} {path}",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(time.perf_counter() - start_time, 4),
            )
            # Re-raise so the error handling middleware formats the response
            raise

        finally:
            clear_request_id()

    def _sanitize_headers(self, headers: dict) -> dict:
        """Replace sensitive header values with "[REDACTED]"."""
        return {
            key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value
            for key, value in headers.items()
        }


def add_request_logging_middleware(app, log_level: str = "INFO"):
    """Add request logging middleware to the FastAPI application."""
    app.add_middleware(RequestLoggingMiddleware, log_level=log_level)
    logger.info("Request logging middleware registered", log_level=log_level)
