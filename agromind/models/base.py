"""ORM base class and mixins — all models inherit from Base."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base — shared MetaData registry for all models."""

    pass


class TimestampMixin:
    """Adds created_at / updated_at audit columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SerialPrimaryKeyMixin:
    """Integer SERIAL primary key; zone ids are small and device-addressable."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class AppendOnlyMixin:
    """BIGSERIAL PK + creation timestamp for append-only audit tables.

    Rows are never updated, so there is no ``updated_at`` column; the
    ``created_at`` timestamp doubles as the retention-pruning key.
    """

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
