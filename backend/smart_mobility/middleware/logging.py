"""
Smart Mobility Backend - Request Logging Middleware
====================================================

What:  One access-log line per request: method, path, status, duration,
       request id and client IP.
How:   Logs on the "smart_mobility.access" logger after the response is
       produced; the level follows the status class (5xx ERROR, 4xx WARNING,
       otherwise INFO). Structured fields also go into `extra` for handlers
       that emit JSON.

What we log vs what we DON'T log (privacy):
    Log:       method, path, status, duration, IP, request ID
    Don't log: bodies (passwords, coordinates), query strings,
               Authorization and Cookie headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from smart_mobility.middleware.request_id import request_id_var

access_logger = logging.getLogger("smart_mobility.access")

# Probed every few seconds by orchestrators
SKIPPED_PATHS = frozenset({"/health", "/api/health"})


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log. CORS preflights and health probes are not logged."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIPPED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client_ip": request.client.host if request.client else "unknown",
        }
        access_logger.log(
            level_for_status(response.status_code),
            "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s] from %(client_ip)s",
            fields,
            extra=fields,
        )
        return response
