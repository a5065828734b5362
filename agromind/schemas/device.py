"""Pydantic schemas for the device (firmware) wire contract."""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from agromind.models.enums import PumpStateEnum
from agromind.schemas.zone import CamelModel


class SensorReport(CamelModel):
	"""Partial sensor push; omitted or null fields keep their previous value."""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

	temperature: float | None = None
	soil_moisture: float | None = None
	water_level: float | None = None
	tank_level: float | None = None
	light_level: float | None = None
	humidity: float | None = None
	pump_status: bool | None = None


class SensorDataRequest(CamelModel):
	zone_id: int
	sensors: SensorReport = Field(default_factory=SensorReport)


class DeviceCommands(CamelModel):
	"""Outbound instruction block; ``pump_state=None`` lets the device decide."""

	pump_state: bool | None = None
	auto_mode: bool
	moisture_threshold: float
	watering_duration: int
	tank_locked: bool


class SensorDataResponse(CamelModel):
	success: bool = True
	commands: DeviceCommands


class CommandPollResponse(DeviceCommands):
	zone_id: int
	current_pump_status: PumpStateEnum


class HeartbeatResponse(CamelModel):
	success: bool = True


class ConnectionStatusResponse(CamelModel):
	connected: bool
	last_update: datetime | None = None
	seconds_since_last_update: int | None = None


class DeviceHealthResponse(CamelModel):
	status: str = "OK"
	timestamp: datetime
	server: str = "agromind-iot"
