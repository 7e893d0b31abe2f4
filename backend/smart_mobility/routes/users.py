"""
Smart Mobility Backend - User Route Handlers
=============================================

What:  /api/users/profile (GET, PUT) and /api/users/stats for the caller.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from smart_mobility.dependencies import get_current_user_id, get_user_service
from smart_mobility.schemas.common import ErrorResponse
from smart_mobility.schemas.user import (
    ProfileResponse,
    UpdateProfileRequest,
    UpdateProfileResponse,
    UserStatsResponse,
)
from smart_mobility.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["Users"])

_ERRORS = {401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.get(
    "/profile",
    response_model=ProfileResponse,
    responses=_ERRORS,
    summary="The caller's profile with all active routes",
)
async def get_profile(
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> ProfileResponse:
    return ProfileResponse(user=await users.get_profile(user_id))


@router.put(
    "/profile",
    response_model=UpdateProfileResponse,
    responses={**_ERRORS, 400: {"model": ErrorResponse}},
    summary="Update name and/or preferences",
)
async def update_profile(
    body: UpdateProfileRequest,
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> UpdateProfileResponse:
    return await users.update_profile(user_id, name=body.name, preferences=body.preferences)


@router.get(
    "/stats",
    response_model=UserStatsResponse,
    responses=_ERRORS,
    summary="Trip count, activity dates and route statistics",
)
async def get_stats(
    user_id: UUID = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> UserStatsResponse:
    return UserStatsResponse(stats=await users.get_user_stats(user_id))
