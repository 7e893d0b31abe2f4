"""
Smart Mobility Backend - Frequent Route Handlers
=================================================

What:  /api/routes endpoints for the caller's frequent routes.
How:   Thin handlers over RouteService; the caller's id always comes from
       the configured AuthStrategy, never from the body or the path.

Endpoints:
    GET    /api/routes/frequent               list active routes
    POST   /api/routes/frequent               save-or-use (201 new, 200 updated)
    POST   /api/routes/frequent/{id}/use      use a route by id
    DELETE /api/routes/frequent/{id}          deactivate (404 if nothing active)
    GET    /api/routes/history                all routes, paginated
    GET    /api/routes/stats                  usage summary

Pagination and limit values are validated by the service (400), not by
Query constraints (422), so direct callers and HTTP callers see the same
error.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from smart_mobility.config import settings
from smart_mobility.dependencies import get_current_user_id, get_route_service
from smart_mobility.exceptions import NotFoundError
from smart_mobility.schemas.common import ErrorResponse, MessageResponse
from smart_mobility.schemas.route import (
    RouteHistoryResponse,
    RouteListResponse,
    RouteResult,
    RouteStatsResponse,
    SaveRouteRequest,
    SaveRouteResult,
    UseRouteRequest,
)
from smart_mobility.services.route_service import RouteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/routes", tags=["Frequent Routes"])


@router.get(
    "/frequent",
    response_model=RouteListResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="List the caller's active frequent routes",
)
async def list_frequent_routes(
    limit: int = Query(default=settings.default_frequent_limit, description="Maximum routes returned"),
    sort_by: Optional[str] = Query(
        default="lastUsed",
        alias="sortBy",
        description="lastUsed (default), timesUsed or createdAt; unknown keys use lastUsed",
    ),
    user_id: UUID = Depends(get_current_user_id),
    service: RouteService = Depends(get_route_service),
) -> RouteListResponse:
    return await service.list_frequent_routes(user_id, limit=limit, sort_by=sort_by)


@router.post(
    "/frequent",
    response_model=SaveRouteResult,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "An existing route absorbed the trip", "model": SaveRouteResult},
        201: {"description": "A new route was created", "model": SaveRouteResult},
        400: {"description": "Missing or invalid coordinates", "model": ErrorResponse},
        401: {"model": ErrorResponse},
    },
    summary="Save a trip as a frequent route, or count a use of a matching one",
    description=(
        "If an active route of the caller lies within 0.005 degrees of the trip "
        "on all four coordinates, that route's usage is incremented. Otherwise "
        "a new route is created."
    ),
)
async def save_frequent_route(
    body: SaveRouteRequest,
    response: Response,
    user_id: UUID = Depends(get_current_user_id),
    service: RouteService = Depends(get_route_service),
) -> SaveRouteResult:
    result = await service.save_or_use_route(
        user_id,
        body.origin,
        body.destination,
        route_name=body.route_name,
        route_info=body.route_info,
    )
    if not result.is_new:
        response.status_code = status.HTTP_200_OK
    return result


@router.post(
    "/frequent/{route_id}/use",
    response_model=RouteResult,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Count a use of one of the caller's routes",
)
async def use_frequent_route(
    route_id: UUID,
    body: Optional[UseRouteRequest] = None,
    user_id: UUID = Depends(get_current_user_id),
    service: RouteService = Depends(get_route_service),
) -> RouteResult:
    route = await service.use_route(
        user_id, route_id, route_info=body.route_info if body else None
    )
    return RouteResult(message="Route usage recorded", route=route)


@router.delete(
    "/frequent/{route_id}",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Deactivate one of the caller's routes",
    description="Soft delete: the route leaves the frequent list but stays in the history.",
)
async def delete_frequent_route(
    route_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: RouteService = Depends(get_route_service),
) -> MessageResponse:
    result = await service.deactivate_route(user_id, route_id)
    if not result.deleted:
        raise NotFoundError(resource="route", resource_id=str(route_id))
    return MessageResponse(message="Route deleted")


@router.get(
    "/history",
    response_model=RouteHistoryResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Every route of the caller, active or not, newest use first",
)
async def route_history(
    page: int = Query(default=1, description="1-based page number"),
    limit: int = Query(default=settings.default_history_limit, description="Page size"),
    user_id: UUID = Depends(get_current_user_id),
    service: RouteService = Depends(get_route_service),
) -> RouteHistoryResponse:
    return await service.get_history(user_id, page=page, limit=limit)


@router.get(
    "/stats",
    response_model=RouteStatsResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Route count, total and average usage, top three routes",
)
async def route_stats(
    user_id: UUID = Depends(get_current_user_id),
    service: RouteService = Depends(get_route_service),
) -> RouteStatsResponse:
    return RouteStatsResponse(stats=await service.get_stats(user_id))
