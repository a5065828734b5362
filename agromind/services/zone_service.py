"""Operator-side zone management: CRUD, config updates, manual pump commands."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from agromind.config import Settings, get_settings
from agromind.models.enums import ConnectionStateEnum, EventTypeEnum
from agromind.models.zone import Zone
from agromind.schemas.zone import (
	ConfigDocument,
	ConfigPatch,
	PumpCommandRequest,
	PumpCommandResponse,
	SensorSnapshot,
	StatusDocument,
	ZoneCreate,
	ZoneRead,
	ZoneUpdate,
)
from agromind.services.event_recorder import EventRecorder
from agromind.services.reconciliation import (
	ControlPolicy,
	EventDraft,
	apply_manual_command,
	diff_config,
)
from agromind.services.zone_store import ZoneStore

logger = structlog.get_logger("agromind.zones")


class ZoneService:
	"""Service for zone CRUD, config policy changes and the manual command slot."""

	def __init__(
		self,
		db: AsyncSession,
		redis_client: Redis | None = None,
		settings: Settings | None = None,
	):
		self.db = db
		self.settings = settings or get_settings()
		self.policy = ControlPolicy.from_settings(self.settings)
		self.store = ZoneStore(db)
		self.recorder = EventRecorder(db, redis_client)

	async def create_zone(self, payload: ZoneCreate) -> Zone:
		config = self.default_config()
		if payload.config is not None:
			config = self._merge_config(config, payload.config)

		zone = Zone(
			user_id=payload.user_id,
			name=payload.name,
			zone_type=payload.zone_type,
			sensors=SensorSnapshot().to_document(),
			status=StatusDocument(connection=ConnectionStateEnum.offline).to_document(),
			config=config.to_document(),
		)
		zone = await self.store.add(zone)
		await self.recorder.record(
			zone,
			EventDraft(
				type=EventTypeEnum.zone_created,
				description=f"Zone '{zone.name}' created",
				metadata={"type": zone.zone_type.value},
			),
		)
		logger.info("zone_created", zone_id=zone.id, user_id=zone.user_id)
		return zone

	async def list_zones(self, user_id: int) -> list[Zone]:
		return await self.store.list_for_user(user_id)

	async def get_zone(self, zone_id: int) -> Zone:
		return await self.store.require(zone_id)

	async def update_zone(self, zone_id: int, payload: ZoneUpdate) -> Zone:
		zone = await self.store.require(zone_id)
		if payload.name is not None:
			zone.name = payload.name
		if payload.zone_type is not None:
			zone.zone_type = payload.zone_type

		drafts: list[EventDraft] = []
		if payload.config is not None:
			old_config = self.store.documents(zone).config
			new_config = self._merge_config(old_config, payload.config)
			drafts = diff_config(old_config, new_config)
			await self.store.write(zone, config=new_config)
		else:
			await self.db.flush()

		await self.recorder.record_all(zone, drafts)
		await self.db.refresh(zone)
		return zone

	async def delete_zone(self, zone_id: int) -> None:
		zone = await self.store.require(zone_id)
		await self.recorder.record(
			zone,
			EventDraft(
				type=EventTypeEnum.zone_deleted,
				description=f"Zone '{zone.name}' deleted",
			),
		)
		await self.store.delete(zone)
		logger.info("zone_deleted", zone_id=zone_id)

	async def command_pump(self, zone_id: int, payload: PumpCommandRequest) -> PumpCommandResponse:
		zone = await self.store.require(zone_id)
		docs = self.store.documents(zone)
		outcome = apply_manual_command(
			status=docs.status,
			sensors=docs.sensors,
			action=payload.action,
			now=datetime.now(UTC),
			policy=self.policy,
		)
		await self.store.write(zone, status=outcome.status)
		await self.recorder.record(zone, outcome.event)

		logger.info(
			"manual_command_queued",
			zone_id=zone.id,
			action=payload.action.value,
			replaced=docs.status.manual_pump_command,
		)
		return PumpCommandResponse(success=True, pump=payload.action, pending=True)

	def default_config(self) -> ConfigDocument:
		return ConfigDocument(
			auto_mode=False,
			moisture_threshold=self.settings.default_moisture_threshold,
			watering_duration=self.settings.default_watering_duration,
		)

	@staticmethod
	def _merge_config(current: ConfigDocument, patch: ConfigPatch) -> ConfigDocument:
		merged = current.to_document()
		merged.update(patch.model_dump(mode="json", by_alias=True, exclude_none=True))
		return ConfigDocument.model_validate(merged)

	@staticmethod
	def to_read(zone: Zone) -> ZoneRead:
		docs = ZoneStore.documents(zone)
		return ZoneRead(
			id=zone.id,
			user_id=zone.user_id,
			name=zone.name,
			zone_type=zone.zone_type,
			sensors=docs.sensors,
			status=docs.status,
			config=docs.config,
			created_at=zone.created_at,
			updated_at=zone.updated_at,
		)
