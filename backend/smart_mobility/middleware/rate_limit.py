"""
Smart Mobility Backend - Credential Rate Limiting Middleware
=============================================================

What:  Per-IP sliding window limit on the endpoints that accept credentials.
Why:   Slows down password guessing and account-creation floods. Route and
       profile endpoints are authenticated already and are not limited.
How:   Keeps the timestamps of each IP's recent credential requests in
       memory. A request is rejected with 429 and Retry-After when the IP
       already has `max_requests` within the last `window` seconds.

Algorithm: Sliding Window Log
    1. Drop the IP's timestamps older than now - window
    2. If the remaining count >= max_requests, reject
    3. Otherwise record now and let the request through

    Unlike a fixed window it cannot be burst at a window boundary.

Scope:
    In-memory, per process. With several workers each worker limits
    separately; a shared store (Redis) would be needed for a global limit.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, FrozenSet, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from smart_mobility.config import settings
from smart_mobility.exceptions import RateLimitExceededError
from smart_mobility.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

CREDENTIAL_PATHS: FrozenSet[str] = frozenset(
    {
        "/api/auth/register",
        "/api/auth/login",
        "/api/auth/google",
        "/api/auth/test-account",
    }
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window limiter for credential endpoints.

    Only POST requests to CREDENTIAL_PATHS count; everything else passes
    untouched, including CORS preflights.
    """

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window: Optional[int] = None,
        paths: FrozenSet[str] = CREDENTIAL_PATHS,
        **kwargs,
    ):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.auth_rate_limit_requests
        self.window = window or settings.auth_rate_limit_window
        self.paths = paths
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "POST" or request.url.path not in self.paths:
            return await call_next(request)

        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )

        now = time.time()
        window_start = now - self.window

        # ── Sliding Window: Clean old entries ─────────────────────────────
        self._requests[client_ip] = [
            ts for ts in self._requests[client_ip] if ts > window_start
        ]

        # ── Check rate limit ──────────────────────────────────────────────
        if len(self._requests[client_ip]) >= self.max_requests:
            oldest = self._requests[client_ip][0]
            exc = RateLimitExceededError(retry_after=int(oldest + self.window - now) + 1)

            logger.warning(
                "Credential rate limit exceeded for IP %s on %s: %d requests in %ds window",
                client_ip,
                request.url.path,
                len(self._requests[client_ip]),
                self.window,
            )

            # Middleware sits outside FastAPI's exception handlers: render here
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        # ── Record this request ───────────────────────────────────────────
        self._requests[client_ip].append(now)

        # ── Periodic cleanup of inactive IPs ──────────────────────────────
        if len(self._requests) > 1000:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
