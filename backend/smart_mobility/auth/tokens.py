"""
Smart Mobility Backend - Bearer Token Service
==============================================

What:  Issues and decodes the signed tokens the mobile app sends as
       `Authorization: Bearer <token>`.
How:   PyJWT, HS256 by default. Claims:
           sub    user id (UUID string)
           email  normalized email at issue time
           name   display name at issue time
           iat    issued-at (epoch seconds)
           exp    iat + jwt_expiry_days
       Only `sub` is trusted for identity; email/name are a convenience for
       the client and may be stale.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import jwt

from smart_mobility.clock import Clock, utcnow
from smart_mobility.config import settings
from smart_mobility.exceptions import AuthenticationError
from smart_mobility.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    user_id: UUID
    email: Optional[str]
    name: Optional[str]
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Signs and verifies bearer tokens with a shared secret."""

    def __init__(
        self,
        secret: str = settings.jwt_secret,
        algorithm: str = settings.jwt_algorithm,
        expiry: timedelta = timedelta(days=settings.jwt_expiry_days),
        clock: Clock = utcnow,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.expiry = expiry
        self.clock = clock

    def issue(self, user: User) -> str:
        now = self.clock()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "iat": now,
            "exp": now + self.expiry,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        """
        Verifies signature and expiry and returns the claims.

        Raises:
            AuthenticationError: expired, tampered, malformed, or missing `sub`
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError(message="Token expired")
        except jwt.InvalidTokenError as e:
            logger.info("Rejected bearer token: %s", type(e).__name__)
            raise AuthenticationError(message="Invalid or expired token")

        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            raise AuthenticationError(message="Invalid or expired token")

        return TokenClaims(
            user_id=user_id,
            email=payload.get("email"),
            name=payload.get("name"),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
