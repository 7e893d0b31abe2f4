"""
Smart Mobility Backend - Security Headers Middleware
=====================================================

What:  Adds X-Content-Type-Options, X-Frame-Options and Referrer-Policy to
       every response.
Why:   The API only serves JSON, but browsers hitting it directly (the docs
       pages, a misconfigured client) should still not sniff, frame, or leak
       referrers.
"""

from dataclasses import dataclass
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


@dataclass(frozen=True)
class SecurityHeadersConfig:
    """Header values, applied as-is."""
    x_frame_options: str = "DENY"
    x_content_type_options: str = "nosniff"
    referrer_policy: str = "strict-origin-when-cross-origin"
    strict_transport_security: Optional[str] = None


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, config: Optional[SecurityHeadersConfig] = None, **kwargs):
        super().__init__(app, **kwargs)
        self.config = config or SecurityHeadersConfig()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        # setdefault: a handler that chose its own value keeps it
        response.headers.setdefault("X-Content-Type-Options", self.config.x_content_type_options)
        response.headers.setdefault("X-Frame-Options", self.config.x_frame_options)
        response.headers.setdefault("Referrer-Policy", self.config.referrer_policy)
        if self.config.strict_transport_security:
            response.headers.setdefault(
                "Strict-Transport-Security", self.config.strict_transport_security
            )
        return response
