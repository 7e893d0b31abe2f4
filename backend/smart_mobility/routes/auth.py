"""
Smart Mobility Backend - Auth Route Handlers
=============================================

What:  /api/auth endpoints: register, login, Google sign-in, logout, verify,
       me and the development test account.
How:   Thin handlers. AuthService does the credential work; the configured
       AuthStrategy gets its sign_in/sign_out hook so the session strategy
       can set or clear its cookie.

Rate limiting of the credential endpoints happens in RateLimitMiddleware.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from smart_mobility.auth.strategies import AuthStrategy
from smart_mobility.dependencies import (
    get_auth_service,
    get_auth_strategy,
    get_current_user_id,
    get_user_service,
)
from smart_mobility.schemas.common import ErrorResponse, MessageResponse
from smart_mobility.schemas.user import (
    AuthResponse,
    DemoAccountResponse,
    GoogleLoginRequest,
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
    VerifyResponse,
)
from smart_mobility.services.auth_service import AuthService
from smart_mobility.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

_AUTH_ERRORS = {
    400: {"description": "Missing or invalid fields", "model": ErrorResponse},
    401: {"description": "Invalid credentials", "model": ErrorResponse},
    429: {"description": "Too many attempts", "model": ErrorResponse},
}


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_AUTH_ERRORS,
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create a local account",
)
async def register(
    body: RegisterRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    strategy: AuthStrategy = Depends(get_auth_strategy),
) -> AuthResponse:
    result = await auth.register(body.name, body.email, body.password)
    await strategy.sign_in(request, result.user.id)
    return result


@router.post(
    "/login",
    response_model=AuthResponse,
    responses=_AUTH_ERRORS,
    summary="Sign in with email and password",
)
async def login(
    body: LoginRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    strategy: AuthStrategy = Depends(get_auth_strategy),
) -> AuthResponse:
    result = await auth.login(body.email, body.password)
    await strategy.sign_in(request, result.user.id)
    return result


@router.post(
    "/google",
    response_model=AuthResponse,
    responses={
        **_AUTH_ERRORS,
        403: {"description": "Google sign-in disabled", "model": ErrorResponse},
        503: {"description": "Google unavailable", "model": ErrorResponse},
    },
    summary="Sign in with a Google ID token",
    description=(
        "Accepts the `credential` returned by Google Sign-In, validates it with "
        "Google and signs the matching account in, creating it on first use."
    ),
)
async def google_login(
    body: GoogleLoginRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    strategy: AuthStrategy = Depends(get_auth_strategy),
) -> AuthResponse:
    result = await auth.google_login(body.credential)
    await strategy.sign_in(request, result.user.id)
    return result


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Sign out",
    description=(
        "Clears the session cookie under the session strategy. Bearer tokens "
        "are stateless: the client discards its token."
    ),
)
async def logout(
    request: Request,
    strategy: AuthStrategy = Depends(get_auth_strategy),
) -> MessageResponse:
    await strategy.sign_out(request)
    return MessageResponse(message="Logged out")


@router.get(
    "/verify",
    response_model=VerifyResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Check that the caller's credentials are still valid",
)
async def verify(
    user_id: UUID = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
) -> VerifyResponse:
    return await auth.verify(user_id)


@router.get(
    "/me",
    response_model=ProfileResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="The caller's account with their five most recent routes",
)
async def me(
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> ProfileResponse:
    return ProfileResponse(user=await users.get_me(user_id))


@router.post(
    "/test-account",
    response_model=DemoAccountResponse,
    responses={403: {"description": "Not in development", "model": ErrorResponse}},
    summary="Create or reuse the development test account",
)
async def test_account(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    strategy: AuthStrategy = Depends(get_auth_strategy),
) -> DemoAccountResponse:
    result = await auth.test_account()
    await strategy.sign_in(request, result.user.id)
    return result
