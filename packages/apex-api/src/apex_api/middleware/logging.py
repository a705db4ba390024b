"""Request logging middleware with correlation IDs."""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from apex_core.logging_config import generate_correlation_id, set_correlation_id

logger = logging.getLogger("apex.api")

SLOW_REQUEST_THRESHOLD_MS = 1000.0


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with timing and tags it with a correlation ID.

    An inbound X-Request-ID header is honored; otherwise one is generated.
    The ID is echoed back on the response and attached to every log record
    emitted while the request is handled.
    """

    def __init__(self, app, exclude_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or ("/health",))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Request-ID") or generate_correlation_id()
        set_correlation_id(correlation_id)
        request.state.request_id = correlation_id

        method = request.method
        path = request.url.path
        quiet = path in self.exclude_paths

        if not quiet:
            logger.info(
                "Request started",
                extra={
                    "event": "request_start",
                    "method": method,
                    "path": path,
                    "client_ip": request.client.host if request.client else "unknown",
                },
            )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed",
                extra={
                    "event": "request_error",
                    "method": method,
                    "path": path,
                    "error_type": type(e).__name__,
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        context = {
            "event": "request_complete",
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if response.status_code >= 500:
            logger.error("Request completed with server error", extra=context)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=context)
        elif duration_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning("Slow request completed", extra=context)
        elif not quiet:
            logger.info("Request completed", extra=context)

        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
