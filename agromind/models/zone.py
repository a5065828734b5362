"""Zone ORM model: the single durable record per irrigation zone.

A zone row holds three semi-structured JSONB documents:

* ``sensors``: last-known readings, written only by device reports;
* ``status``: observed machine state plus the one-deep command slot,
  written by both the device path and the manual-command path;
* ``config``: operator policy (auto mode, threshold, duration, opaque
  weather flags).

``version`` is the optimistic-concurrency stamp: every flush of a modified
zone issues ``UPDATE ... WHERE version = :read_version`` so that two
overlapping read-modify-write cycles cannot silently overwrite each other.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Enum, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from agromind.models.base import Base, SerialPrimaryKeyMixin, TimestampMixin
from agromind.models.enums import ZoneTypeEnum


class Zone(Base, SerialPrimaryKeyMixin, TimestampMixin):
    """One irrigation-controlled area fronted by exactly one device."""

    __tablename__ = "zones"
    __table_args__ = (Index("ix_zones_user_id", "user_id"),)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    zone_type: Mapped[ZoneTypeEnum] = mapped_column(
        "type",
        Enum(
            ZoneTypeEnum,
            name="zone_type",
            values_callable=lambda members: [member.value for member in members],
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
    )
    sensors: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    status: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Zone id={self.id} name={self.name!r} user={self.user_id}>"
