"""
Smart Mobility Backend - FastAPI Application Factory
=====================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   uvicorn (uvicorn smart_mobility.main:app) and the test suite, which
       builds its own app with create_app(test_settings).

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware Chain:                                           │
    │  ┌──────────┐ ┌────────┐ ┌─────────┐ ┌──────────┐ ┌───────┐  │
    │  │RateLimit │→│ Req ID │→│ Logging │→│ Security │→│Session│  │
    │  └──────────┘ └────────┘ └─────────┘ └──────────┘ └───────┘  │
    │                                                              │
    │  Routes:                                                     │
    │  /api/auth/*   /api/users/*   /api/routes/*   /health        │
    │                                                              │
    │  app.state:                                                  │
    │  settings, token_service, auth_strategy, google_verifier     │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging, configuration check, banner
    Shutdown:  dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from smart_mobility import __version__
from smart_mobility.auth.google import GoogleIdentityVerifier
from smart_mobility.auth.strategies import build_auth_strategy
from smart_mobility.auth.tokens import TokenService
from smart_mobility.config import Settings, settings
from smart_mobility.database import dispose_engine
from smart_mobility.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConflictError,
    ForbiddenError,
    MobilityError,
    NotFoundError,
    RateLimitExceededError,
    StorageError,
    UpstreamServiceError,
    ValidationError,
)
from smart_mobility.middleware.logging import RequestLoggingMiddleware
from smart_mobility.middleware.rate_limit import RateLimitMiddleware
from smart_mobility.middleware.request_id import RequestIDMiddleware, request_id_var
from smart_mobility.middleware.security_headers import (
    SecurityHeadersConfig,
    SecurityHeadersMiddleware,
)
from smart_mobility.routes import auth, frequent_routes, health, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


def setup_logging(level: str = settings.log_level) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout
    (Docker captures stdout). Called once during startup.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # These log every operation at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("Smart Mobility Backend %s starting up...", __version__)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and logs show the problem
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Environment: %s", app_settings.environment)
    logger.info("Auth strategy: %s", app.state.auth_strategy.name)
    logger.info(
        "Google sign-in: %s",
        "enabled" if app.state.google_verifier is not None else "disabled",
    )
    logger.info(
        "Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port
    )
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Smart Mobility Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {
        "success": False,
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps application exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400 Bad Request
        AuthenticationError     → 401 Unauthorized
        ForbiddenError          → 403 Forbidden
        NotFoundError           → 404 Not Found
        ConflictError           → 409 Conflict
        RateLimitExceededError  → 429 Too Many Requests
        StorageError            → 500 Internal Server Error
        UpstreamServiceError    → 503 Service Unavailable
        CircuitBreakerOpenError → 503 Service Unavailable
        MobilityError (base)    → 500 Internal Server Error
        Exception (fallback)    → 500 Internal Server Error

    Security: 5xx bodies never carry internal details (SQL, stack traces);
    those are logged server-side with the request id.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=_error_body("unauthorized", exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        return JSONResponse(status_code=403, content=_error_body("forbidden", exc.message))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body("not_found", exc.message))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return JSONResponse(
            status_code=409,
            content=_error_body("conflict", exc.message, exc.context),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        rid = request_id_var.get("")
        logger.error("[%s] Storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(UpstreamServiceError)
    async def handle_upstream_error(request: Request, exc: UpstreamServiceError):
        logger.error("[%s] Upstream service error: %s", request_id_var.get(""), exc.message)
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=503,
            content=_error_body("service_unavailable", exc.message),
            headers=headers,
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body(
                "service_unavailable", exc.message, {"recovery_time": exc.recovery_time}
            ),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(MobilityError)
    async def handle_mobility_error(request: Request, exc: MobilityError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: generic 500 with the request id, full trace in the log."""
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to build the app from; the process-wide
            `settings` when omitted. Tests pass their own to switch the
            auth strategy or the environment.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Smart Mobility API",
        description=(
            "Backend of the Smart Mobility app: accounts (email/password and "
            "Google), profiles, and frequent routes with usage statistics."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── App-wide components ───────────────────────────────────────────────
    token_service = TokenService(
        secret=app_settings.jwt_secret,
        algorithm=app_settings.jwt_algorithm,
        expiry=timedelta(days=app_settings.jwt_expiry_days),
    )
    app.state.settings = app_settings
    app.state.token_service = token_service
    app.state.auth_strategy = build_auth_strategy(app_settings.auth_strategy, token_service)
    app.state.google_verifier = (
        GoogleIdentityVerifier(
            client_id=app_settings.google_client_id,
            tokeninfo_url=app_settings.google_tokeninfo_url,
            timeout=app_settings.google_timeout,
        )
        if app_settings.google_client_id
        else None
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = outermost)

    if app_settings.auth_strategy == "session":
        app.add_middleware(
            SessionMiddleware,
            secret_key=app_settings.session_secret,
            session_cookie=app_settings.session_cookie,
            max_age=app_settings.session_max_age,
            same_site="lax",
            https_only=app_settings.session_https_only,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    # Small JSON bodies are not worth compressing
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # HSTS only where TLS terminates in front of us
    app.add_middleware(
        SecurityHeadersMiddleware,
        config=SecurityHeadersConfig(
            strict_transport_security=(
                "max-age=31536000; includeSubDomains" if app_settings.is_production else None
            ),
        ),
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=app_settings.auth_rate_limit_requests,
        window=app_settings.auth_rate_limit_window,
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(frequent_routes.router)

    return app


# uvicorn expects `smart_mobility.main:app` to be importable
app = create_app()
