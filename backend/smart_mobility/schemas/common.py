"""
Smart Mobility Backend - Shared Schema Pieces
==============================================

What:  Base model and the response shapes shared by every router.
Why:   The mobile client was written against camelCase JSON
       (`timesUsed`, `isNew`, ...). Python code keeps snake_case attribute
       names; the alias generator produces the wire names, and FastAPI
       serializes response models by alias.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every API schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "success": false,
            "error": "not_found",
            "message": "route with ID '...' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="Database connectivity: connected, disconnected")
    google_sign_in: str = Field(description="disabled, available, circuit_open")
    auth_strategy: str
    uptime_seconds: float
    timestamp: str
