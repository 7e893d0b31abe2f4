"""
Smart Mobility Backend - Frequent Route Schemas
================================================

What:  Request and response models for /api/routes.
How:   Request models are deliberately permissive about presence (every
       field Optional): the route service enforces "origin and destination
       with coordinates are required" itself and answers with a 400
       ValidationError, the same way for HTTP callers and direct callers.
       Coordinates are taken as sent (`Any`): lax float coercion would turn
       `true` into 1.0 and "10.0" into 10.0, so the numeric check belongs to
       require_point alone.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from smart_mobility.schemas.common import CamelModel


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CoordinatesIn(CamelModel):
    latitude: Optional[Any] = Field(default=None, description="Decimal degrees, -90..90")
    longitude: Optional[Any] = Field(default=None, description="Decimal degrees, -180..180")


class PlaceIn(CamelModel):
    """An origin or destination as sent by the app's place picker."""
    name: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[CoordinatesIn] = None


class SaveRouteRequest(CamelModel):
    origin: Optional[PlaceIn] = None
    destination: Optional[PlaceIn] = None
    route_name: Optional[str] = Field(
        default=None,
        description="Label; defaults to '<origin name> → <destination name>'",
    )
    route_info: Optional[Any] = Field(
        default=None,
        description="Opaque payload (distance, duration, path); replaces the stored one",
    )


class UseRouteRequest(CamelModel):
    route_info: Optional[Any] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class FrequentRouteResponse(CamelModel):
    """Full representation of a stored frequent route."""
    id: uuid.UUID
    user_id: uuid.UUID
    route_name: str
    origin_name: Optional[str] = None
    origin_address: Optional[str] = None
    origin_latitude: float
    origin_longitude: float
    destination_name: Optional[str] = None
    destination_address: Optional[str] = None
    destination_latitude: float
    destination_longitude: float
    route_info: Optional[Any] = None
    times_used: int
    last_used: datetime
    is_active: bool
    created_at: datetime


class SaveRouteResult(CamelModel):
    """
    Outcome of save-or-use.

    is_new=True: no active route of the user was within tolerance, a new one
    was created. is_new=False: an existing route absorbed the use.
    """
    success: bool = True
    message: str
    route: FrequentRouteResponse
    is_new: bool


class RouteResult(CamelModel):
    success: bool = True
    message: str
    route: FrequentRouteResponse


class DeactivateResult(CamelModel):
    deleted: bool


class RouteListResponse(CamelModel):
    success: bool = True
    routes: List[FrequentRouteResponse]
    count: int


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class RouteHistoryResponse(CamelModel):
    success: bool = True
    routes: List[FrequentRouteResponse]
    pagination: Pagination


class TopRoute(CamelModel):
    route_name: str
    times_used: int
    origin_name: Optional[str] = None
    destination_name: Optional[str] = None


class RouteStats(CamelModel):
    total_routes: int
    total_usage: int
    avg_usage_per_route: int
    top_routes: List[TopRoute]


class RouteStatsResponse(CamelModel):
    success: bool = True
    stats: RouteStats
