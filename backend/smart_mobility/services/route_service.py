"""
Smart Mobility Backend - Route Accounting Service
==================================================

What:  Saves, uses, lists, pages, summarizes and deactivates frequent routes.
Why:   Keeps the usage counters of a route and of its owner consistent: every
       route-use event is exactly one `times_used += 1` on one route plus one
       `total_trips += 1` on the user, inside the same transaction.
How:   Composes GeoMatcher, RouteStore and UserStore. All three are injected,
       so tests run it against AsyncMocks or an in-memory database.
Who:   Called by the /api/routes and /api/users route handlers.

Save-or-use flow:
    ┌──────────┐    ┌────────────┐    ┌───────────┐    ┌─────────────────┐
    │ Validate │───▶│ Lock user  │───▶│ GeoMatcher│───▶│ use existing or │
    │ coords   │    │ FOR UPDATE │    │  .match   │    │ create new      │
    └──────────┘    └────────────┘    └───────────┘    └─────────────────┘

    Locking the owner row first serializes concurrent saves of the same user,
    so two simultaneous identical trips cannot both miss the match and create
    two routes.

Time:
    Every timestamp this service writes comes from the injected clock, so
    "last_used strictly increases" is testable with a fake clock.
"""

import logging
import math
import uuid
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from smart_mobility.clock import Clock, utcnow
from smart_mobility.config import settings
from smart_mobility.exceptions import NotFoundError, ValidationError
from smart_mobility.models.route import FrequentRoute, default_route_name
from smart_mobility.models.user import User
from smart_mobility.schemas.route import (
    DeactivateResult,
    FrequentRouteResponse,
    Pagination,
    PlaceIn,
    RouteHistoryResponse,
    RouteListResponse,
    RouteStats,
    SaveRouteResult,
    TopRoute,
)
from smart_mobility.services.geo_matcher import GeoMatcher, require_point
from smart_mobility.stores.base import RouteSortKey, RouteStore, UserStore

logger = logging.getLogger(__name__)

TOP_ROUTES_LIMIT = 3


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for the non-negative averages used here."""
    return int(math.floor(value + 0.5))


def _require_positive(value: int, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(message=f"{field} must be a positive integer", field=field)
    return value


class RouteService:
    """
    Business logic for frequent routes.

    Responsibilities:
        - save_or_use_route(): match-or-create plus usage accounting
        - use_route(): usage accounting on an explicit route id
        - deactivate_route(): soft delete
        - list_frequent_routes() / get_history() / get_stats(): reads
    """

    def __init__(
        self,
        routes: RouteStore,
        users: UserStore,
        matcher: Optional[GeoMatcher] = None,
        clock: Clock = utcnow,
    ):
        self.routes = routes
        self.users = users
        self.matcher = matcher or GeoMatcher(routes)
        self.clock = clock

    async def _lock_owner(self, user_id: UUID) -> User:
        user = await self.users.get(user_id, for_update=True)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def _record_trip(self, user: User, now: datetime) -> None:
        user.record_trip(now)
        await self.users.save(user)

    async def save_or_use_route(
        self,
        user_id: UUID,
        origin: Optional[PlaceIn],
        destination: Optional[PlaceIn],
        route_name: Optional[str] = None,
        route_info: Optional[Any] = None,
    ) -> SaveRouteResult:
        """
        Records a trip from `origin` to `destination`.

        If an active route of the user lies within tolerance it absorbs the
        trip (is_new=False); otherwise a new route is created with
        times_used=1 (is_new=True). Either way the user's total_trips grows
        by one and last_active moves to now.

        `route_name` is used only when a route is created. `route_info`
        replaces the stored payload when given; None keeps it.

        Raises:
            ValidationError: origin/destination coordinates missing or invalid
                (nothing is read or written in that case)
            NotFoundError: the user does not exist
            StorageError: persistence failed
        """
        # ── Step 1: Validate before touching storage ──────────────────────
        origin_point = require_point(origin, "origin")
        destination_point = require_point(destination, "destination")

        # ── Step 2: Serialize against concurrent saves of this user ───────
        user = await self._lock_owner(user_id)

        # ── Step 3: Match ─────────────────────────────────────────────────
        existing = await self.matcher.match(user_id, origin_point, destination_point)
        now = self.clock()

        if existing is not None:
            existing.record_use(now, route_info)
            await self.routes.save(existing)
            await self._record_trip(user, now)
            logger.info(
                "Route %s used again by user %s (times_used=%d)",
                existing.id, user_id, existing.times_used,
            )
            return SaveRouteResult(
                message="Route usage updated",
                route=FrequentRouteResponse.model_validate(existing),
                is_new=False,
            )

        # ── Step 4: No match, create ──────────────────────────────────────
        route = FrequentRoute(
            id=uuid.uuid4(),
            user_id=user_id,
            route_name=route_name or default_route_name(origin.name, destination.name),
            origin_name=origin.name,
            origin_address=origin.address,
            origin_latitude=origin_point.latitude,
            origin_longitude=origin_point.longitude,
            destination_name=destination.name,
            destination_address=destination.address,
            destination_latitude=destination_point.latitude,
            destination_longitude=destination_point.longitude,
            route_info=route_info,
            times_used=1,
            last_used=now,
            is_active=True,
            created_at=now,
        )
        route = await self.routes.add(route)
        await self._record_trip(user, now)
        logger.info("New frequent route %s saved for user %s", route.id, user_id)

        return SaveRouteResult(
            message="New route saved",
            route=FrequentRouteResponse.model_validate(route),
            is_new=True,
        )

    async def use_route(
        self,
        user_id: UUID,
        route_id: UUID,
        route_info: Optional[Any] = None,
    ) -> FrequentRouteResponse:
        """
        Records a trip on a route picked by id.

        Raises:
            NotFoundError: no ACTIVE route with this id belongs to the user
                (inactive and foreign routes are indistinguishable from
                missing ones)
            StorageError: persistence failed
        """
        user = await self._lock_owner(user_id)

        route = await self.routes.get(route_id, user_id, active=True)
        if route is None:
            raise NotFoundError(resource="route", resource_id=str(route_id))

        now = self.clock()
        route.record_use(now, route_info)
        await self.routes.save(route)
        await self._record_trip(user, now)
        logger.info(
            "Route %s used by user %s (times_used=%d)", route.id, user_id, route.times_used
        )
        return FrequentRouteResponse.model_validate(route)

    async def deactivate_route(self, user_id: UUID, route_id: UUID) -> DeactivateResult:
        """
        Soft-deletes an active route. `deleted=False` when nothing active with
        that id belongs to the user, including a second call on the same route.
        """
        deleted = await self.routes.deactivate(route_id, user_id)
        if deleted:
            logger.info("Route %s deactivated by user %s", route_id, user_id)
        else:
            logger.debug("No active route %s for user %s to deactivate", route_id, user_id)
        return DeactivateResult(deleted=deleted)

    async def list_frequent_routes(
        self,
        user_id: UUID,
        limit: int = settings.default_frequent_limit,
        sort_by: Optional[str] = None,
    ) -> RouteListResponse:
        """Active routes, at most `limit`, ordered by `sort_by` (default lastUsed)."""
        _require_positive(limit, "limit")
        sort = RouteSortKey.parse(sort_by)
        routes = await self.routes.list_routes(user_id, sort=sort, limit=limit, active=True)
        items = [FrequentRouteResponse.model_validate(route) for route in routes]
        return RouteListResponse(routes=items, count=len(items))

    async def get_history(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = settings.default_history_limit,
    ) -> RouteHistoryResponse:
        """
        Every route of the user, active and inactive, newest use first.

        `pages` is ceil(total / limit); a page past the end is empty, not an
        error.
        """
        _require_positive(page, "page")
        _require_positive(limit, "limit")

        total = await self.routes.count(user_id, active=None)
        routes = await self.routes.page(user_id, offset=(page - 1) * limit, limit=limit, active=None)

        return RouteHistoryResponse(
            routes=[FrequentRouteResponse.model_validate(route) for route in routes],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    async def get_stats(self, user_id: UUID) -> RouteStats:
        """
        Summary over ACTIVE routes.

        avg_usage_per_route is the mean of times_used rounded half-up, 0 when
        the user has no active route. top_routes holds up to three routes by
        times_used, descending.
        """
        summary = await self.routes.usage_summary(user_id, active=True)
        top: List[FrequentRoute] = await self.routes.list_routes(
            user_id, sort=RouteSortKey.TIMES_USED, limit=TOP_ROUTES_LIMIT, active=True
        )
        return RouteStats(
            total_routes=summary.count,
            total_usage=summary.total,
            avg_usage_per_route=round_half_up(summary.average) if summary.count else 0,
            top_routes=[
                TopRoute(
                    route_name=route.route_name,
                    times_used=route.times_used,
                    origin_name=route.origin_name,
                    destination_name=route.destination_name,
                )
                for route in top
            ],
        )
