"""initial_schema

Revision ID: 3c9e1f7a2b45
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the ``zones`` table (three JSONB documents plus the optimistic
``version`` stamp), the append-only ``events`` table and the ``zone_type``
PostgreSQL enum.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c9e1f7a2b45"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_ZONE_TYPE = postgresql.ENUM(
    "Outdoor", "Indoor", "Greenhouse", name="zone_type", create_type=False
)


def upgrade() -> None:
    # ── 1. Enum types ───────────────────────────────────────────────────
    ENUM_ZONE_TYPE.create(op.get_bind(), checkfirst=True)

    # ── 2. Tables ───────────────────────────────────────────────────────

    # zones
    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", ENUM_ZONE_TYPE, nullable=False),
        sa.Column("sensors", postgresql.JSONB(), nullable=False),
        sa.Column("status", postgresql.JSONB(), nullable=False),
        sa.Column("config", postgresql.JSONB(), nullable=False),
        sa.Column(
            "version",
            sa.Integer(),
            server_default=sa.text("1"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_zones_user_id", "zones", ["user_id"])

    # events (no FK to zones: history outlives the zone)
    op.create_table(
        "events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("zone_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_user_created", "events", ["user_id", "created_at"])
    op.create_index("ix_events_zone_created", "events", ["zone_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_events_zone_created", table_name="events")
    op.drop_index("ix_events_user_created", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_zones_user_id", table_name="zones")
    op.drop_table("zones")

    ENUM_ZONE_TYPE.drop(op.get_bind(), checkfirst=True)
