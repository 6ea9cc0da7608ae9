"""
Travel Admin Backend — Request Logging Middleware
===================================================

What:  One access log line per HTTP request.
How:   Times the request, then logs method, path, status, duration, request
       ID and client IP. Level follows the status class.

Example:
    2024-01-15T12:00:00 [INFO] travel_admin.access: PUT /api/products/3f2a... 200 84.2ms [a1b2c3d4] from 10.0.0.7

Request bodies are never logged: they carry uploaded image bytes.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("travel_admin.access")

# Polled by load balancers; logging them drowns real traffic
QUIET_PATHS = frozenset({"/health", "/test", "/mongodb-status"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log status and latency for each request.

    5xx → ERROR, 4xx → WARNING, everything else → INFO.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # perf_counter: monotonic, sub-microsecond resolution
        start_time = time.perf_counter()

        # request.client is None under ASGI test transports
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        if path in QUIET_PATHS:
            return await call_next(request)

        response = await call_next(request)

        # Includes object-store transfers
        duration_ms = (time.perf_counter() - start_time) * 1000
        # Level follows status class
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
