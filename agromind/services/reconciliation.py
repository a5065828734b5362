"""Zone state reconciliation and irrigation control rules.

Pure decision logic shared by the device poll path, the manual command path,
the config update path and the device simulator.  Nothing in this module
touches the database: callers load the three zone documents, hand them in,
and persist whatever comes back in a single write.

Two actors write the status document.  The device owns ``pump``,
``connection``, ``lastUpdate`` and ``hasSensorData``; the operator owns only
the ``manualPumpCommand`` slot.  The device path reads the slot once per
report and always returns it cleared, so a command is delivered at most
once whether or not the device acts on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from agromind.config import Settings
from agromind.models.enums import (
	ConnectionStateEnum,
	EventTypeEnum,
	PumpActionEnum,
	PumpStateEnum,
)
from agromind.schemas.device import DeviceCommands, SensorReport
from agromind.schemas.zone import ConfigDocument, SensorSnapshot, StatusDocument
from agromind.services.errors import PumpCommandRejectedError

PERCENT_FIELDS = ("soil_moisture", "humidity", "light_level")

WATCHED_CONFIG_FIELDS: dict[str, str] = {
	"auto_mode": "autoMode",
	"moisture_threshold": "moistureThreshold",
	"watering_duration": "wateringDuration",
}


@dataclass(slots=True, frozen=True)
class ControlPolicy:
	"""Safety-lock and auto-mode thresholds."""

	tank_lock_level: float = 5.0
	tank_recovery_level: float = 10.0
	auto_mode_deadband: float = 25.0

	@classmethod
	def from_settings(cls, settings: Settings) -> ControlPolicy:
		return cls(
			tank_lock_level=settings.tank_lock_level,
			tank_recovery_level=settings.tank_recovery_level,
			auto_mode_deadband=settings.auto_mode_deadband,
		)


@dataclass(slots=True)
class EventDraft:
	"""An audit entry decided by the engine, not yet persisted."""

	type: EventTypeEnum
	description: str
	metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ReportOutcome:
	sensors: SensorSnapshot
	status: StatusDocument
	commands: DeviceCommands
	event: EventDraft | None
	delivered_command: bool | None


@dataclass(slots=True)
class PollOutcome:
	status: StatusDocument
	commands: DeviceCommands
	delivered_command: bool | None


@dataclass(slots=True)
class ManualCommandOutcome:
	status: StatusDocument
	event: EventDraft


# ── Sensor merge ────────────────────────────────────────────────────────────


def _clamp_percent(value: float) -> float:
	return max(0.0, min(100.0, float(value)))


def sync_tank_aliases(snapshot: SensorSnapshot) -> SensorSnapshot:
	"""Make ``tank_level`` and ``water_level`` agree; ``tank_level`` wins a tie."""
	if snapshot.tank_level is not None:
		snapshot.water_level = snapshot.tank_level
	elif snapshot.water_level is not None:
		snapshot.tank_level = snapshot.water_level
	return snapshot


def merge_sensors(previous: SensorSnapshot, report: SensorReport) -> SensorSnapshot:
	"""Per-field last-write-wins merge; omitted and null fields carry forward."""
	updates = report.model_dump(exclude_none=True, exclude={"pump_status"})
	tank_level = updates.pop("tank_level", None)
	water_level = updates.pop("water_level", None)
	for key in PERCENT_FIELDS:
		if key in updates:
			updates[key] = _clamp_percent(updates[key])

	merged = previous.model_copy(update=updates, deep=True)
	level = tank_level if tank_level is not None else water_level
	if level is not None:
		merged.tank_level = _clamp_percent(level)
		merged.water_level = merged.tank_level
	return sync_tank_aliases(merged)


# ── Pump state rules ────────────────────────────────────────────────────────


def is_tank_empty(tank_level: float | None, policy: ControlPolicy) -> bool:
	return tank_level is not None and tank_level <= policy.tank_lock_level


def resolve_pump_state(
	previous: PumpStateEnum,
	reported_on: bool | None,
	tank_level: float | None,
	policy: ControlPolicy,
) -> PumpStateEnum:
	"""Apply the tank safety lock with hysteresis over the device's own report.

	The lock engages at ``tank_lock_level`` and only releases once the tank is
	strictly above ``tank_recovery_level``.  An unknown tank level never locks.
	"""
	if is_tank_empty(tank_level, policy):
		return PumpStateEnum.locked
	if (
		previous == PumpStateEnum.locked
		and tank_level is not None
		and tank_level <= policy.tank_recovery_level
	):
		return PumpStateEnum.locked
	if reported_on is None:
		return PumpStateEnum.off if previous == PumpStateEnum.locked else previous
	return PumpStateEnum.on if reported_on else PumpStateEnum.off


def evaluate_auto_mode(
	pump: PumpStateEnum,
	soil_moisture: float | None,
	config: ConfigDocument,
	policy: ControlPolicy,
) -> PumpStateEnum:
	"""Device-side auto-mode hysteresis.

	Start when moisture falls below the threshold with the pump off; stop when
	it rises above ``threshold + deadband`` with the pump on.  Anything in
	between leaves the pump alone.
	"""
	if not config.auto_mode or pump == PumpStateEnum.locked or soil_moisture is None:
		return pump
	threshold = config.moisture_threshold
	if pump == PumpStateEnum.off and soil_moisture < threshold:
		return PumpStateEnum.on
	if pump == PumpStateEnum.on and soil_moisture > threshold + policy.auto_mode_deadband:
		return PumpStateEnum.off
	return pump


def classify_transition(
	previous: PumpStateEnum,
	current: PumpStateEnum,
	*,
	auto_mode: bool,
	tank_level: float | None,
) -> EventDraft | None:
	"""Map a pump state change to exactly one audit event (none if unchanged)."""
	if previous == current:
		return None

	metadata: dict[str, Any] = {
		"previousPump": previous.value,
		"pump": current.value,
		"tankLevel": tank_level,
		"autoMode": auto_mode,
	}
	if current == PumpStateEnum.locked:
		return EventDraft(
			type=EventTypeEnum.tank_alarm,
			description=f"Pump locked: tank level at {_format_level(tank_level)}",
			metadata=metadata,
		)
	if current == PumpStateEnum.on:
		if auto_mode:
			return EventDraft(EventTypeEnum.auto_watering_started, "Automatic watering started", metadata)
		return EventDraft(EventTypeEnum.manual_watering_started, "Manual watering started", metadata)
	if previous == PumpStateEnum.locked:
		return EventDraft(
			type=EventTypeEnum.pump_unlocked,
			description=f"Pump unlocked: tank refilled to {_format_level(tank_level)}",
			metadata=metadata,
		)
	if auto_mode:
		return EventDraft(EventTypeEnum.auto_watering_ended, "Automatic watering ended", metadata)
	return EventDraft(EventTypeEnum.manual_watering_ended, "Manual watering ended", metadata)


def _format_level(level: float | None) -> str:
	return "unknown" if level is None else f"{level:.1f}%"


# ── Outbound commands ───────────────────────────────────────────────────────


def build_commands(
	pending: bool | None,
	config: ConfigDocument,
	*,
	tank_locked: bool,
) -> DeviceCommands:
	# A queued ON that meets a locked tank is consumed but not forwarded.
	pump_state = None if (tank_locked and pending is True) else pending
	return DeviceCommands(
		pump_state=pump_state,
		auto_mode=config.auto_mode,
		moisture_threshold=config.moisture_threshold,
		watering_duration=config.watering_duration,
		tank_locked=tank_locked,
	)


def reconcile_report(
	*,
	status: StatusDocument,
	sensors: SensorSnapshot,
	config: ConfigDocument,
	report: SensorReport,
	now: datetime,
	policy: ControlPolicy,
) -> ReportOutcome:
	"""Fold one device report into the zone documents."""
	merged = merge_sensors(sensors, report)
	pending = status.manual_pump_command

	pump = resolve_pump_state(status.pump, report.pump_status, merged.tank_level, policy)
	event = classify_transition(
		status.pump,
		pump,
		auto_mode=config.auto_mode,
		tank_level=merged.tank_level,
	)

	last_watered = status.last_watered
	if status.pump == PumpStateEnum.on and pump != PumpStateEnum.on:
		last_watered = now

	new_status = status.model_copy(
		update={
			"pump": pump,
			"connection": ConnectionStateEnum.online,
			"last_update": now,
			"has_sensor_data": True,
			"last_watered": last_watered,
			"manual_pump_command": None,
		},
		deep=True,
	)
	commands = build_commands(pending, config, tank_locked=pump == PumpStateEnum.locked)
	return ReportOutcome(
		sensors=merged,
		status=new_status,
		commands=commands,
		event=event,
		delivered_command=pending,
	)


def consume_commands(
	*,
	status: StatusDocument,
	sensors: SensorSnapshot,
	config: ConfigDocument,
	policy: ControlPolicy,
) -> PollOutcome:
	"""Commands-only poll: hand out and clear the slot without a sensor merge."""
	pending = status.manual_pump_command
	tank_locked = status.pump == PumpStateEnum.locked or is_tank_empty(
		sync_tank_aliases(sensors.model_copy()).tank_level,
		policy,
	)
	new_status = status.model_copy(update={"manual_pump_command": None}, deep=True)
	return PollOutcome(
		status=new_status,
		commands=build_commands(pending, config, tank_locked=tank_locked),
		delivered_command=pending,
	)


# ── Manual command path ─────────────────────────────────────────────────────


def apply_manual_command(
	*,
	status: StatusDocument,
	sensors: SensorSnapshot,
	action: PumpActionEnum,
	now: datetime,
	policy: ControlPolicy,
) -> ManualCommandOutcome:
	"""Validate an operator instruction and write it into the command slot.

	A second command before the device polls replaces the first.
	"""
	tank_level = sync_tank_aliases(sensors.model_copy()).tank_level
	if action == PumpActionEnum.on:
		if status.pump == PumpStateEnum.locked:
			raise PumpCommandRejectedError(
				"pump_locked",
				"Pump is locked because the tank is empty",
				tank_level,
			)
		if is_tank_empty(tank_level, policy):
			raise PumpCommandRejectedError(
				"tank_empty",
				"Tank level is too low to start the pump",
				tank_level,
			)

	last_watered = status.last_watered
	if action == PumpActionEnum.off and status.pump == PumpStateEnum.on:
		last_watered = now

	new_status = status.model_copy(
		update={
			"manual_pump_command": action == PumpActionEnum.on,
			"last_watered": last_watered,
		},
		deep=True,
	)
	if action == PumpActionEnum.on:
		event_type, description = EventTypeEnum.manual_watering_started, "Manual watering requested"
	else:
		event_type, description = EventTypeEnum.manual_watering_ended, "Manual stop requested"
	event = EventDraft(
		type=event_type,
		description=description,
		metadata={
			"action": action.value,
			"pending": True,
			"replacedCommand": status.manual_pump_command,
			"pump": status.pump.value,
		},
	)
	return ManualCommandOutcome(status=new_status, event=event)


# ── Config diff ─────────────────────────────────────────────────────────────


def diff_config(old: ConfigDocument, new: ConfigDocument) -> list[EventDraft]:
	drafts: list[EventDraft] = []
	for attr, key in WATCHED_CONFIG_FIELDS.items():
		before = getattr(old, attr)
		after = getattr(new, attr)
		if before == after:
			continue
		if attr == "auto_mode":
			description = "Auto mode enabled" if after else "Auto mode disabled"
		else:
			description = f"{key} changed from {before} to {after}"
		drafts.append(
			EventDraft(
				type=EventTypeEnum.config_changed,
				description=description,
				metadata={"field": key, "old": before, "new": after},
			)
		)
	return drafts


# ── Liveness ────────────────────────────────────────────────────────────────


def connection_liveness(
	last_update: datetime | None,
	now: datetime,
	stale_seconds: float,
) -> tuple[bool, float | None]:
	"""Return ``(connected, seconds_since_last_update)`` for the staleness window."""
	if last_update is None:
		return False, None
	elapsed = (now - last_update).total_seconds()
	return elapsed < stale_seconds, elapsed
