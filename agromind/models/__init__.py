"""ORM model registry — importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.  Application code can also do::

    from agromind.models import Zone, Event, ...
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from agromind.models.base import AppendOnlyMixin, Base, SerialPrimaryKeyMixin, TimestampMixin

# ── Enums ───────────────────────────────────────────────────────────────────
from agromind.models.enums import (
    ConnectionStateEnum,
    EventTypeEnum,
    PumpActionEnum,
    PumpStateEnum,
    ZoneTypeEnum,
)

# ── Audit trail ─────────────────────────────────────────────────────────────
from agromind.models.events import Event

# ── Zone record ─────────────────────────────────────────────────────────────
from agromind.models.zone import Zone

__all__ = [
    "AppendOnlyMixin",
    # Base & mixins
    "Base",
    "SerialPrimaryKeyMixin",
    # Enums
    "ConnectionStateEnum",
    # Audit
    "Event",
    "EventTypeEnum",
    "PumpActionEnum",
    "PumpStateEnum",
    "TimestampMixin",
    # Zone
    "Zone",
    "ZoneTypeEnum",
]
