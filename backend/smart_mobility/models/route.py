"""
Smart Mobility Backend - FrequentRoute SQLAlchemy Model
========================================================

What:  ORM model representing the `frequent_routes` table.
Who:   Read and written through `RouteStore`; Alembic tracks it for migrations.

Table Design Rationale:
    - Coordinates are plain double precision columns in decimal degrees. The
      matcher compares them per axis against a tolerance, so no geometry
      type or spatial index is needed.
    - route_info: opaque client payload (distance, duration, path...).
    - is_active: soft delete. Deactivated routes stay for the history view.
    - Index (user_id, is_active, last_used DESC) serves the three hot
      queries: match candidates, the frequent list and the history page.

State machine:
    nonexistent → active (created) → active (used, repeatable) → inactive
    No transition leaves `inactive`.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from smart_mobility.clock import utcnow
from smart_mobility.database import Base


def default_route_name(origin_name: Optional[str], destination_name: Optional[str]) -> str:
    return f"{origin_name or 'Origin'} → {destination_name or 'Destination'}"


class FrequentRoute(Base):
    """An origin → destination pair a user travels, with usage statistics."""

    __tablename__ = "frequent_routes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    route_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Origin ────────────────────────────────────────────────────────────
    origin_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    origin_address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    origin_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    origin_longitude: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Destination ───────────────────────────────────────────────────────
    destination_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    destination_address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    destination_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    destination_longitude: Mapped[float] = mapped_column(Float, nullable=False)

    route_info: Mapped[Optional[Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        default=None,
    )

    # ── Usage statistics ──────────────────────────────────────────────────
    # times_used never decreases; it starts at 1 because saving a route is
    # itself a use.
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    last_used: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index(
            "idx_frequent_routes_user_active_last_used",
            "user_id",
            "is_active",
            last_used.desc(),
        ),
    )

    def record_use(self, now: datetime, route_info: Optional[Any] = None) -> None:
        """
        Applies one use: +1 to `times_used`, `last_used = now`, and replaces
        `route_info` only when a new payload is supplied.
        """
        self.times_used = (self.times_used or 0) + 1
        self.last_used = now
        if route_info is not None:
            self.route_info = route_info

    def __repr__(self) -> str:
        return (
            f"<FrequentRoute(id={self.id}, name='{self.route_name}', "
            f"times_used={self.times_used}, active={self.is_active})>"
        )
