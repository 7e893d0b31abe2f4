"""
Smart Mobility Backend - Google ID Token Verification
======================================================

What:  Verifies the ID token ("credential") the app receives from Google
       Sign-In and returns the identity it asserts.
How:   Asks Google's tokeninfo endpoint to validate the token over httpx,
       then checks the audience against our OAuth client id and that the
       email is verified.
Who:   AuthService.google_login.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transport errors
       and 5xx answers from Google
    2. Circuit breaker so a Google outage fails sign-ins instantly instead of
       holding requests through every retry
    3. A 4xx answer means "bad token": never retried, never counted against
       the circuit
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from smart_mobility.config import settings
from smart_mobility.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    UpstreamServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


def backoff_policy(min_wait: float, max_wait: float):
    """Exponential wait from min_wait up to max_wait, plus up to min_wait of jitter."""
    return wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait) + wait_random(
        0, min_wait
    )


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════


class CircuitBreaker:
    """
    Circuit breaker pattern around an upstream dependency.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Thread Safety:
        Plain counters, no locks. uvicorn async workers run one event loop
        per process, so state is per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError: OPEN and the recovery timeout has not elapsed
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Google Identity Verifier
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GoogleIdentity:
    """What a verified Google ID token says about the user."""
    sub: str
    email: str
    name: str
    picture: Optional[str] = None


class _TransientGoogleError(Exception):
    """A failure worth retrying: transport error or 5xx from Google."""


class GoogleIdentityVerifier:
    """
    Validates Google ID tokens through the tokeninfo endpoint.

    Error Handling Chain:
        transport error / 5xx → tenacity retries (retry_max_attempts)
        → all retries fail → circuit breaker failure → UpstreamServiceError
        → threshold reached → CircuitBreakerOpenError without calling Google
        4xx / wrong audience / unverified email → AuthenticationError
    """

    def __init__(
        self,
        client_id: str = settings.google_client_id,
        tokeninfo_url: str = settings.google_tokeninfo_url,
        timeout: float = settings.google_timeout,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.client_id = client_id
        self.tokeninfo_url = tokeninfo_url
        self.timeout = timeout
        # Tests pass an httpx.MockTransport; production uses the default one
        self.transport = transport
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.client_id)

    async def verify(self, credential: Optional[str]) -> GoogleIdentity:
        """
        Verify a Google ID token.

        Raises:
            ValidationError: no credential supplied
            AuthenticationError: Google rejects the token, or it was issued
                for another client, or the email is unverified
            UpstreamServiceError: Google unreachable after all retries, or
                sign-in with Google is not configured
            CircuitBreakerOpenError: too many recent upstream failures
        """
        if not credential:
            raise ValidationError(message="Google credential is required", field="credential")
        if not self.enabled:
            raise UpstreamServiceError(message="Google sign-in is not configured")

        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        try:
            payload = await self._fetch_tokeninfo(credential, request_id)
            self.circuit_breaker.record_success()
        except AuthenticationError:
            # Google answered; it is up, the token is bad
            self.circuit_breaker.record_success()
            raise
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All tokeninfo retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise UpstreamServiceError(
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )

        return self._identity_from(payload, request_id)

    def _identity_from(self, payload: Dict[str, Any], request_id: str) -> GoogleIdentity:
        if payload.get("aud") != self.client_id:
            logger.warning("[%s] Google token issued for another client", request_id)
            raise AuthenticationError(message="Token not intended for this app")

        issuer = payload.get("iss")
        if issuer is not None and issuer not in _GOOGLE_ISSUERS:
            raise AuthenticationError(message="Invalid Google credential")

        email = payload.get("email")
        sub = payload.get("sub")
        if not email or not sub:
            raise AuthenticationError(message="Google token is missing the account email")

        # tokeninfo returns booleans as strings
        if str(payload.get("email_verified", "false")).lower() != "true":
            raise AuthenticationError(message="Google account email is not verified")

        return GoogleIdentity(
            sub=str(sub),
            email=email,
            name=payload.get("name") or email.split("@")[0],
            picture=payload.get("picture"),
        )

    @retry(
        retry=retry_if_exception_type(_TransientGoogleError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=backoff_policy(settings.retry_min_wait, settings.retry_max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def _fetch_tokeninfo(self, credential: str, request_id: str) -> Dict[str, Any]:
        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.tokeninfo_url, params={"id_token": credential})
        except httpx.HTTPError as e:
            logger.warning("[%s] tokeninfo request failed: %s", request_id, type(e).__name__)
            raise _TransientGoogleError(type(e).__name__) from e

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "[%s] tokeninfo answered %d in %.0fms", request_id, response.status_code, duration_ms
        )

        if response.status_code >= 500:
            raise _TransientGoogleError(f"HTTP {response.status_code}")
        if response.status_code != 200:
            raise AuthenticationError(message="Invalid Google credential")

        try:
            payload = response.json()
        except ValueError as e:
            raise _TransientGoogleError("invalid JSON from tokeninfo") from e
        if not isinstance(payload, dict):
            raise _TransientGoogleError("unexpected tokeninfo payload")
        return payload
