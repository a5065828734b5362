"""Pydantic schemas for zone documents and operator-facing zone endpoints.

The three per-zone documents are free-form JSONB; the models below name the
keys the control loop reads and let everything else through untouched
(``extra="allow"``).  All keys travel in camelCase on the wire and in
storage.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agromind.models.enums import (
	ConnectionStateEnum,
	PumpActionEnum,
	PumpStateEnum,
	ZoneTypeEnum,
)


class CamelModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentModel(CamelModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

	def to_document(self) -> dict:
		return self.model_dump(mode="json", by_alias=True)


# ── Stored documents ────────────────────────────────────────────────────────


class SensorSnapshot(DocumentModel):
	"""Last-known readings; ``tankLevel`` and ``waterLevel`` are aliases."""

	soil_moisture: float | None = None
	temperature: float | None = None
	humidity: float | None = None
	light_level: float | None = None
	tank_level: float | None = None
	water_level: float | None = None


class StatusDocument(DocumentModel):
	"""Observed machine state plus the one-deep manual command slot.

	``manual_pump_command`` is tri-state: ``None`` (slot empty), ``True``
	(pending ON) or ``False`` (pending OFF).
	"""

	pump: PumpStateEnum = PumpStateEnum.off
	connection: ConnectionStateEnum = ConnectionStateEnum.unknown
	last_update: datetime | None = None
	has_sensor_data: bool = False
	last_watered: datetime | None = None
	manual_pump_command: bool | None = None


class ConfigDocument(DocumentModel):
	"""Operator policy; weather flags ride along as extra keys."""

	auto_mode: bool = False
	moisture_threshold: float = Field(default=30.0, ge=0, le=100)
	watering_duration: int = Field(default=10, gt=0)


# ── Operator requests ───────────────────────────────────────────────────────


class ConfigPatch(DocumentModel):
	auto_mode: bool | None = None
	moisture_threshold: float | None = Field(default=None, ge=0, le=100)
	watering_duration: int | None = Field(default=None, gt=0)


class ZoneCreate(CamelModel):
	user_id: int
	name: str = Field(min_length=1, max_length=255)
	zone_type: ZoneTypeEnum = Field(alias="type")
	config: ConfigPatch | None = None


class ZoneUpdate(CamelModel):
	name: str | None = Field(default=None, min_length=1, max_length=255)
	zone_type: ZoneTypeEnum | None = Field(default=None, alias="type")
	config: ConfigPatch | None = None


class PumpCommandRequest(CamelModel):
	action: PumpActionEnum


class PumpCommandResponse(CamelModel):
	success: bool = True
	pump: PumpActionEnum
	pending: bool = True


# ── Operator responses ──────────────────────────────────────────────────────


class ZoneRead(CamelModel):
	id: int
	user_id: int
	name: str
	zone_type: ZoneTypeEnum = Field(alias="type")
	sensors: SensorSnapshot
	status: StatusDocument
	config: ConfigDocument
	created_at: datetime
	updated_at: datetime


class ZoneListRead(CamelModel):
	items: list[ZoneRead]


class ZoneDeleted(CamelModel):
	id: int
	deleted: bool = True
