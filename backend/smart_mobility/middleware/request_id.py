"""
Smart Mobility Backend - Request ID Middleware
===============================================

What:  Assigns a short id to each request and returns it in X-Request-ID.
Why:   Every log line of one request, and the error body the client sees,
       carry the same id, so a support report can be matched to server logs.
How:   Reuses a client-supplied X-Request-ID, otherwise generates 8 hex chars
       of a UUID4. The id lives in a ContextVar for loggers and exception
       handlers, and in request.state for route handlers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID when present (truncated to 64 chars)
        2. Otherwise generate a short UUID
        3. Store it in request_id_var and request.state.request_id
        4. Echo it in the response's X-Request-ID header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "").strip()[:MAX_CLIENT_ID_LENGTH]
        if not rid:
            rid = str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        response.headers["X-Request-ID"] = rid
        return response
