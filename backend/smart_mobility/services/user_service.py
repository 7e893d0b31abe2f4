"""
Smart Mobility Backend - User Profile Service
==============================================

What:  Profile read/update and per-user statistics.
Who:   Called by /api/users and GET /api/auth/me.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from smart_mobility.clock import Clock, utcnow
from smart_mobility.exceptions import NotFoundError, ValidationError
from smart_mobility.models.user import User
from smart_mobility.schemas.route import FrequentRouteResponse
from smart_mobility.schemas.user import (
    UpdateProfileResponse,
    UserActivity,
    UserProfile,
    UserProfileWithRoutes,
    UserStats,
)
from smart_mobility.services.route_service import RouteService
from smart_mobility.stores.base import RouteSortKey, RouteStore, UserStore

logger = logging.getLogger(__name__)

ME_RECENT_ROUTES = 5


class UserService:
    """Reads and updates the caller's own account."""

    def __init__(
        self,
        users: UserStore,
        routes: RouteStore,
        route_service: Optional[RouteService] = None,
        clock: Clock = utcnow,
    ):
        self.users = users
        self.routes = routes
        self.route_service = route_service or RouteService(routes, users, clock=clock)
        self.clock = clock

    async def _require_user(self, user_id: UUID) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def _with_routes(self, user: User, limit: Optional[int]) -> UserProfileWithRoutes:
        routes = await self.routes.list_routes(
            user.id, sort=RouteSortKey.LAST_USED, limit=limit, active=True
        )
        active_count = await self.routes.count(user.id, active=True)
        profile = UserProfile.model_validate(user)
        return UserProfileWithRoutes(
            **profile.model_dump(),
            frequent_routes=[FrequentRouteResponse.model_validate(r) for r in routes],
            active_route_count=active_count,
        )

    async def get_profile(self, user_id: UUID) -> UserProfileWithRoutes:
        """The user with every active route, most recently used first."""
        user = await self._require_user(user_id)
        return await self._with_routes(user, limit=None)

    async def get_me(self, user_id: UUID) -> UserProfileWithRoutes:
        """Like get_profile, limited to the five most recently used routes."""
        user = await self._require_user(user_id)
        return await self._with_routes(user, limit=ME_RECENT_ROUTES)

    async def update_profile(
        self,
        user_id: UUID,
        name: Optional[str] = None,
        preferences: Optional[Any] = None,
    ) -> UpdateProfileResponse:
        """
        Changes only the supplied fields. last_active is touched either way.

        Raises:
            ValidationError: name supplied but blank
            NotFoundError: the user does not exist
        """
        user = await self._require_user(user_id)

        if name is not None:
            if not name.strip():
                raise ValidationError(message="Name cannot be empty", field="name")
            user.name = name.strip()
        if preferences is not None:
            user.preferences = preferences
        user.touch(self.clock())

        await self.users.save(user)
        logger.info("Profile updated for user %s", user_id)
        return UpdateProfileResponse(
            message="Profile updated",
            user=UserProfile.model_validate(user),
        )

    async def get_user_stats(self, user_id: UUID) -> UserStats:
        user = await self._require_user(user_id)
        route_stats = await self.route_service.get_stats(user_id)
        return UserStats(
            user=UserActivity(
                total_trips=user.total_trips,
                last_active=user.last_active,
                created_at=user.created_at,
            ),
            routes=route_stats,
        )
