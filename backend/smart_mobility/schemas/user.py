"""
Smart Mobility Backend - User and Auth Schemas
===============================================

What:  Request/response models for /api/auth and /api/users.
Why:   Password hashes and Google subject ids never leave the service; the
       response models below list exactly what the app may see.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from smart_mobility.schemas.common import CamelModel
from smart_mobility.schemas.route import FrequentRouteResponse, RouteStats


# ── Auth requests ─────────────────────────────────────────────────────────


class RegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GoogleLoginRequest(CamelModel):
    credential: Optional[str] = None


# ── Auth responses ────────────────────────────────────────────────────────


class UserSummary(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class AuthResponse(CamelModel):
    success: bool = True
    message: str
    token: str
    user: UserSummary


class DemoCredentials(CamelModel):
    email: str
    password: str


class DemoAccountResponse(AuthResponse):
    credentials: DemoCredentials


class VerifyResponse(CamelModel):
    success: bool = True
    user: UserSummary


# ── Profile ───────────────────────────────────────────────────────────────


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    preferences: Optional[Any] = None


class UserProfile(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    provider: str
    profile_picture: Optional[str] = None
    preferences: Optional[Any] = None
    total_trips: int
    last_active: datetime
    created_at: datetime


class UserProfileWithRoutes(UserProfile):
    frequent_routes: List[FrequentRouteResponse]
    active_route_count: int


class ProfileResponse(CamelModel):
    success: bool = True
    user: UserProfileWithRoutes


class UpdateProfileResponse(CamelModel):
    success: bool = True
    message: str
    user: UserProfile


class UserActivity(CamelModel):
    total_trips: int
    last_active: datetime
    created_at: datetime


class UserStats(CamelModel):
    user: UserActivity
    routes: RouteStats


class UserStatsResponse(CamelModel):
    success: bool = True
    stats: UserStats
