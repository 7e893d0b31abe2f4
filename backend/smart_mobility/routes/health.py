"""
Smart Mobility Backend - Health Check Route
============================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database with SELECT 1 and reports the state of the
       Google sign-in circuit breaker without calling Google.
Who:   Docker health checks, load balancers, and monitoring systems.

Status levels:
    - healthy:   database reachable, Google sign-in usable or disabled (HTTP 200)
    - degraded:  Google circuit open, local sign-in still works (HTTP 200)
    - unhealthy: database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response, status
from sqlalchemy import text

from smart_mobility import __version__
from smart_mobility.config import settings
from smart_mobility.database import engine
from smart_mobility.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Module-level: initialized once when the module loads
_start_time = time.time()


@router.get("/", summary="Service banner")
async def root(request: Request) -> dict:
    app_settings = getattr(request.app.state, "settings", settings)
    return {
        "success": True,
        "message": "Smart Mobility API",
        "version": __version__,
        "environment": app_settings.environment,
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health status of the backend service and its dependencies. "
        "Used by Docker health checks and load balancers."
    ),
)
@router.get("/api/health", response_model=HealthResponse, include_in_schema=False)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    google_status = "disabled"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Google sign-in circuit ──────────────────────────────────────
    verifier = getattr(request.app.state, "google_verifier", None)
    if verifier is not None:
        if verifier.circuit_breaker.state == verifier.circuit_breaker.OPEN:
            google_status = "circuit_open"
            overall = "degraded" if overall != "unhealthy" else overall
        else:
            google_status = "available"

    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    strategy = getattr(request.app.state, "auth_strategy", None)
    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        google_sign_in=google_status,
        auth_strategy=strategy.name if strategy is not None else settings.auth_strategy,
        uptime_seconds=round(time.time() - _start_time, 2),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
