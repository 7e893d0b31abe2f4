"""
Smart Mobility Backend - User SQLAlchemy Model
===============================================

What:  ORM model representing the `users` table.
Who:   Read and written through `UserStore`; Alembic tracks it for migrations.

Table Design Rationale:
    - email: stored lower-cased and stripped, unique. Every lookup normalizes
      the same way (see `normalize_email`), which makes the uniqueness
      case-insensitive without a functional index.
    - password_hash: NULL for accounts created through Google sign-in.
    - google_id: unique when present; links a Google account to a local one
      that registered with the same email first.
    - total_trips: one increment per route-use event (save-or-use or use).
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from smart_mobility.clock import utcnow
from smart_mobility.database import Base

PROVIDER_LOCAL = "local"
PROVIDER_GOOGLE = "google"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class User(Base):
    """
    Represents an account of the mobility app.

    Lifecycle:
        1. Created at registration, first Google sign-in, or by the
           development test-account endpoint
        2. `last_active` touched on login, verify, profile update and every
           route-use event; `total_trips` incremented on route-use events
        3. Never deleted by the API
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
        comment="Lower-cased, stripped email address",
    )

    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="argon2 hash; NULL for Google-only accounts",
    )

    provider: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PROVIDER_LOCAL,
        server_default=text("'local'"),
    )

    google_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        default=None,
    )

    profile_picture: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    preferences: Mapped[Optional[Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        default=None,
    )

    total_trips: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    last_active: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def touch(self, now: datetime) -> None:
        """Marks the user active at `now`."""
        self.last_active = now

    def record_trip(self, now: datetime) -> None:
        """One route-use event: bump the trip counter and mark the user active."""
        self.total_trips = (self.total_trips or 0) + 1
        self.last_active = now

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', provider='{self.provider}')>"
