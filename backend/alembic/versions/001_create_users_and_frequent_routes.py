"""Create users and frequent_routes tables

Revision ID: 001
Revises: None
Create Date: 2025-01-10 00:00:00.000000+00:00

What:  Initial schema: accounts and their frequent routes.
How:   PostgreSQL types: UUID keys generated server-side with
       gen_random_uuid(), JSONB payloads, TIMESTAMP WITH TIME ZONE.

Rollback: downgrade() drops both tables (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "email",
            sa.String(320),
            nullable=False,
            comment="Lower-cased, stripped email address",
        ),
        sa.Column(
            "password_hash",
            sa.String(255),
            nullable=True,
            comment="argon2 hash; NULL for Google-only accounts",
        ),
        sa.Column(
            "provider",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'local'"),
        ),
        sa.Column("google_id", sa.String(255), nullable=True),
        sa.Column("profile_picture", sa.String(1024), nullable=True),
        sa.Column("preferences", postgresql.JSONB(), nullable=True),
        sa.Column("total_trips", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "last_active",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("google_id", name="uq_users_google_id"),
        sa.CheckConstraint("total_trips >= 0", name="ck_users_total_trips_non_negative"),
        sa.CheckConstraint(
            "provider IN ('local', 'google')",
            name="ck_users_provider_valid",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "frequent_routes",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("route_name", sa.String(255), nullable=False),
        sa.Column("origin_name", sa.String(255), nullable=True),
        sa.Column("origin_address", sa.String(512), nullable=True),
        sa.Column("origin_latitude", sa.Float(), nullable=False),
        sa.Column("origin_longitude", sa.Float(), nullable=False),
        sa.Column("destination_name", sa.String(255), nullable=True),
        sa.Column("destination_address", sa.String(512), nullable=True),
        sa.Column("destination_latitude", sa.Float(), nullable=False),
        sa.Column("destination_longitude", sa.Float(), nullable=False),
        sa.Column("route_info", postgresql.JSONB(), nullable=True),
        sa.Column("times_used", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "last_used",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_frequent_routes"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_frequent_routes_user_id_users",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("times_used >= 1", name="ck_frequent_routes_times_used_positive"),
        sa.CheckConstraint(
            "origin_latitude BETWEEN -90 AND 90 AND destination_latitude BETWEEN -90 AND 90",
            name="ck_frequent_routes_latitude_range",
        ),
        sa.CheckConstraint(
            "origin_longitude BETWEEN -180 AND 180 AND destination_longitude BETWEEN -180 AND 180",
            name="ck_frequent_routes_longitude_range",
        ),
    )

    # Serves match candidates, the frequent list and the history page
    op.create_index(
        "idx_frequent_routes_user_active_last_used",
        "frequent_routes",
        ["user_id", "is_active", sa.text("last_used DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_frequent_routes_user_active_last_used", table_name="frequent_routes")
    op.drop_table("frequent_routes")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
