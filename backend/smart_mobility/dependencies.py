"""
Smart Mobility Backend - FastAPI Dependencies
==============================================

What:  Builds stores and services for one request and resolves the caller.
Why:   Nothing in the service layer reaches for global state: every request
       gets stores bound to its own AsyncSession, and services built around
       those stores. Tests override `get_db_session` (or any factory below)
       through `app.dependency_overrides`.

Dependency graph per request:
    get_db_session ─▶ get_route_store ─┐
                   └▶ get_user_store ──┼─▶ get_route_service
                                       ├─▶ get_user_service
                                       └─▶ get_auth_service ◀─ app.state
    request ─▶ app.state.auth_strategy ─▶ get_current_user_id
"""

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smart_mobility.auth.strategies import AuthStrategy
from smart_mobility.auth.tokens import TokenService
from smart_mobility.database import get_db_session
from smart_mobility.services.auth_service import AuthService
from smart_mobility.services.route_service import RouteService
from smart_mobility.services.user_service import UserService
from smart_mobility.stores.base import RouteStore, UserStore
from smart_mobility.stores.sql import SqlRouteStore, SqlUserStore


# ── Stores ────────────────────────────────────────────────────────────────


def get_route_store(db: AsyncSession = Depends(get_db_session)) -> RouteStore:
    return SqlRouteStore(db)


def get_user_store(db: AsyncSession = Depends(get_db_session)) -> UserStore:
    return SqlUserStore(db)


# ── App-wide components (built once in create_app) ────────────────────────


def get_auth_strategy(request: Request) -> AuthStrategy:
    return request.app.state.auth_strategy


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


# ── Services ──────────────────────────────────────────────────────────────


def get_route_service(
    routes: RouteStore = Depends(get_route_store),
    users: UserStore = Depends(get_user_store),
) -> RouteService:
    return RouteService(routes, users)


def get_user_service(
    users: UserStore = Depends(get_user_store),
    routes: RouteStore = Depends(get_route_store),
) -> UserService:
    return UserService(users, routes)


def get_auth_service(
    request: Request,
    users: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(
        users,
        tokens,
        google=request.app.state.google_verifier,
        allow_test_account=request.app.state.settings.is_development,
    )


# ── Caller ────────────────────────────────────────────────────────────────


async def get_current_user_id(
    request: Request,
    strategy: AuthStrategy = Depends(get_auth_strategy),
) -> UUID:
    """
    The authenticated caller's user id.

    Raises:
        AuthenticationError: no or invalid credentials (→ 401)
    """
    return await strategy.resolve_caller(request)
