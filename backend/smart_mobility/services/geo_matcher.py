"""
Smart Mobility Backend - Geo-Matcher
=====================================

What:  Decides whether a newly reported trip is "the same route" as one the
       user already has.
Who:   Called by RouteService.save_or_use_route before creating a route.
When:  Every save-or-use request.

Matching Rule:
    A stored ACTIVE route of the same user matches when all four of

        |stored.origin_latitude       - origin.latitude|       <= T
        |stored.origin_longitude      - origin.longitude|      <= T
        |stored.destination_latitude  - destination.latitude|  <= T
        |stored.destination_longitude - destination.longitude| <= T

    hold at once (T = settings.route_match_tolerance, 0.005 degrees, roughly
    550 m of latitude). Bounds are inclusive. It is a per-axis box test, not
    a great-circle distance: a route 0.004 off on every axis still matches.

    Direction matters. A → B never matches B → A because origin is compared
    with origin and destination with destination.

    When several stored routes qualify, the most recently used one wins
    (ties: newest created, then id). The store applies that ordering.
"""

import logging
import math
from numbers import Real
from typing import Any, Optional
from uuid import UUID

from smart_mobility.config import settings
from smart_mobility.exceptions import ValidationError
from smart_mobility.models.route import FrequentRoute
from smart_mobility.schemas.route import PlaceIn
from smart_mobility.stores.base import GeoPoint, RouteStore

logger = logging.getLogger(__name__)


def _coordinate(value: Any, field: str, bound: float) -> float:
    # bool is a subclass of int; True is not a latitude
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(
            message=f"{field} must be a number",
            field=field,
        )
    number = float(value)
    if not math.isfinite(number) or not -bound <= number <= bound:
        raise ValidationError(
            message=f"{field} must be between {-bound:g} and {bound:g}",
            field=field,
            context={"value": str(value)},
        )
    return number


def require_point(place: Optional[PlaceIn], field: str) -> GeoPoint:
    """
    Extracts a validated coordinate pair from an origin/destination payload.

    Raises:
        ValidationError: place or coordinates missing, a component missing or
            non-numeric, not finite, or outside [-90, 90] / [-180, 180].
    """
    if place is None or place.coordinates is None:
        raise ValidationError(
            message="Origin and destination with coordinates are required",
            field=field,
        )
    coords = place.coordinates
    return GeoPoint(
        latitude=_coordinate(coords.latitude, f"{field}.coordinates.latitude", 90.0),
        longitude=_coordinate(coords.longitude, f"{field}.coordinates.longitude", 180.0),
    )


def within_tolerance(
    route: FrequentRoute, origin: GeoPoint, destination: GeoPoint, tolerance: float
) -> bool:
    """The matching rule evaluated in Python against one loaded route."""
    return (
        abs(route.origin_latitude - origin.latitude) <= tolerance
        and abs(route.origin_longitude - origin.longitude) <= tolerance
        and abs(route.destination_latitude - destination.latitude) <= tolerance
        and abs(route.destination_longitude - destination.longitude) <= tolerance
    )


class GeoMatcher:
    """
    Finds the stored route a trip belongs to, if any.

    Stateless apart from its store and tolerance; a read-only operation.
    """

    def __init__(
        self,
        routes: RouteStore,
        tolerance: float = settings.route_match_tolerance,
    ):
        if tolerance < 0 or not math.isfinite(tolerance):
            raise ValueError(f"tolerance must be a finite non-negative number, got {tolerance!r}")
        self.routes = routes
        self.tolerance = tolerance

    async def match(
        self, user_id: UUID, origin: GeoPoint, destination: GeoPoint
    ) -> Optional[FrequentRoute]:
        """
        Returns the matching active route of `user_id`, or None.

        Raises:
            StorageError: the store could not be read
        """
        candidates = await self.routes.find_matches(
            user_id, origin, destination, self.tolerance, active=True
        )
        # Re-check in Python so every store answers with identical boundaries
        candidates = [
            route for route in candidates
            if route.is_active
            and within_tolerance(route, origin, destination, self.tolerance)
        ]
        if not candidates:
            logger.debug("No stored route within %.4f deg for user %s", self.tolerance, user_id)
            return None

        if len(candidates) > 1:
            logger.info(
                "%d stored routes match for user %s; using most recently used %s",
                len(candidates), user_id, candidates[0].id,
            )
        return candidates[0]
