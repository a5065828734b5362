"""Enum types for ORM columns and zone documents.

``ZoneTypeEnum`` maps to a PostgreSQL CREATE TYPE ... AS ENUM.  The pump,
connection and event enums are stored as plain strings (inside JSONB
documents or VARCHAR columns) because the documents evolve independently of
the schema.
"""

from enum import StrEnum

# ── Zone enums ──────────────────────────────────────────────────────────────


class ZoneTypeEnum(StrEnum):
    """Environment a zone's device is installed in."""

    outdoor = "Outdoor"
    indoor = "Indoor"
    greenhouse = "Greenhouse"


class PumpStateEnum(StrEnum):
    """Observed pump state held in the status document."""

    on = "ON"
    off = "OFF"
    locked = "LOCKED"


class ConnectionStateEnum(StrEnum):
    """Passive, polling-derived device liveness."""

    online = "ONLINE"
    offline = "OFFLINE"
    unknown = "UNKNOWN"


class PumpActionEnum(StrEnum):
    """Operator pump instruction."""

    on = "ON"
    off = "OFF"


# ── Audit enums ─────────────────────────────────────────────────────────────


class EventTypeEnum(StrEnum):
    """Audit event type tags."""

    auto_watering_started = "auto_watering_started"
    auto_watering_ended = "auto_watering_ended"
    manual_watering_started = "manual_watering_started"
    manual_watering_ended = "manual_watering_ended"
    tank_alarm = "tank_alarm"
    pump_unlocked = "pump_unlocked"
    config_changed = "config_changed"
    zone_created = "zone_created"
    zone_deleted = "zone_deleted"
