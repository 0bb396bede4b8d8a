"""
Request Logging Middleware

Logs one line per HTTP request (method, path, status code, duration) and
reports the processing time back to the client in X-Process-Time.

Redirect lookups are the hot path of the service, so the line is logged at
DEBUG for successful redirects and at INFO for everything else.
"""

import logging
import time

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{request.method} {request.url.path} failed after {elapsed_ms:.2f}ms",
                exc_info=True
            )
            raise

        elapsed = time.perf_counter() - start_time
        level = logging.DEBUG if response.status_code == 302 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} {response.status_code} {elapsed * 1000:.2f}ms"
        )

        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


def add_logging_middleware(app: FastAPI) -> None:
    """Add logging middleware to FastAPI app."""
    app.add_middleware(LoggingMiddleware)
