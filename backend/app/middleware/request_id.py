"""
Travel Admin Backend — Request ID Middleware
==============================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   A failed image upload shows up as several log lines (route, object
       store, lifecycle reclaim). The shared ID ties them together.
How:   Reads X-Request-ID from the client or generates one, stores it in a
       ContextVar and request.state, and sets the response header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests share one thread
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an ID.

    A client-supplied X-Request-ID is kept as-is so dashboard error reports
    can be matched to server logs.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Incoming ID wins; otherwise the first 8 chars of a UUID4
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]

        # ContextVar for loggers, request.state for handlers
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
