"""
Smart Mobility Backend - Caller Resolution Strategies
======================================================

What:  One interface, two interchangeable ways of knowing who is calling.
Why:   Route handlers depend on "the caller's user id", never on how it was
       transported. Which transport is used is a deployment decision
       (settings.auth_strategy), not something each route re-implements.
How:   create_app() builds one strategy with `build_auth_strategy` and puts
       it on `app.state.auth_strategy`; the `get_current_user_id`
       dependency asks it to resolve every protected request.

Strategies:
    BearerTokenStrategy    Authorization: Bearer <jwt>  (stateless, default)
    SessionCookieStrategy  signed cookie from SessionMiddleware holding the
                           user id (requires the middleware, see main.py)

Both issue a bearer token in sign-in responses so the mobile client keeps a
single response shape whichever strategy the server runs.
"""

import logging
from abc import ABC, abstractmethod
from uuid import UUID

from starlette.requests import Request

from smart_mobility.auth.tokens import TokenService
from smart_mobility.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"


class AuthStrategy(ABC):
    """
    Capability interface: resolve the caller of a request, or refuse.

    Implementations raise AuthenticationError (→ 401) and never return None.
    """

    name: str = "abstract"

    @abstractmethod
    async def resolve_caller(self, request: Request) -> UUID:
        ...

    async def sign_in(self, request: Request, user_id: UUID) -> None:
        """Hook run after a successful login/registration. No-op by default."""

    async def sign_out(self, request: Request) -> None:
        """Hook run on logout. No-op by default."""


class BearerTokenStrategy(AuthStrategy):
    name = "token"

    def __init__(self, tokens: TokenService):
        self.tokens = tokens

    async def resolve_caller(self, request: Request) -> UUID:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError(message="Not authenticated")
        return self.tokens.decode(token.strip()).user_id


class SessionCookieStrategy(AuthStrategy):
    name = "session"

    async def resolve_caller(self, request: Request) -> UUID:
        if "session" not in request.scope:
            # Misconfiguration, not a client error: SessionMiddleware missing
            logger.error("Session strategy active but SessionMiddleware is not installed")
            raise AuthenticationError(message="Not authenticated")

        raw = request.session.get(SESSION_USER_KEY)
        if not raw:
            raise AuthenticationError(message="Not authenticated")
        try:
            return UUID(str(raw))
        except ValueError:
            request.session.clear()
            raise AuthenticationError(message="Not authenticated")

    async def sign_in(self, request: Request, user_id: UUID) -> None:
        request.session[SESSION_USER_KEY] = str(user_id)

    async def sign_out(self, request: Request) -> None:
        request.session.clear()


def build_auth_strategy(name: str, tokens: TokenService) -> AuthStrategy:
    """Factory keyed by settings.auth_strategy ("token" | "session")."""
    if name == "token":
        return BearerTokenStrategy(tokens)
    if name == "session":
        return SessionCookieStrategy()
    raise ValueError(f"Unknown auth strategy '{name}'")
