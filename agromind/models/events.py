"""Append-only audit event model."""

from __future__ import annotations

from sqlalchemy import Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from agromind.models.base import AppendOnlyMixin, Base


class Event(Base, AppendOnlyMixin):
    """Immutable audit row for a zone state transition.

    ``zone_id`` carries no foreign key: events outlive the zone they
    describe and are only removed by age-based retention pruning.
    ``metadata_`` (JSONB, DB column "metadata") holds structured context
    such as tank level, previous pump state, or the changed config field.
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_user_created", "user_id", "created_at"),
        Index("ix_events_zone_created", "zone_id", "created_at"),
    )

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    zone_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Event id={self.id} zone={self.zone_id} type={self.type}>"
        )
