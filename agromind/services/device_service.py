"""Device poll handling: sensor reports, command pulls, heartbeats, liveness."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from agromind.config import Settings, get_settings
from agromind.models.enums import ConnectionStateEnum, PumpStateEnum
from agromind.models.zone import Zone
from agromind.schemas.device import (
	CommandPollResponse,
	ConnectionStatusResponse,
	HeartbeatResponse,
	SensorDataRequest,
	SensorDataResponse,
)
from agromind.services.errors import PairingRequiredError
from agromind.services.event_recorder import EventRecorder
from agromind.services.reconciliation import (
	ControlPolicy,
	connection_liveness,
	consume_commands,
	reconcile_report,
)
from agromind.services.zone_store import ZoneStore

logger = structlog.get_logger("agromind.device")


class DeviceService:
	"""Stateless handler behind the device poll endpoints.

	Every call is one read-modify-write of a single zone row.  Unknown zone
	ids raise ``PairingRequiredError`` so firmware can fall back to its
	provisioning flow.
	"""

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

	async def report_sensors(self, payload: SensorDataRequest) -> SensorDataResponse:
		zone = await self._require_paired(payload.zone_id)
		docs = self.store.documents(zone)
		now = datetime.now(UTC)

		outcome = reconcile_report(
			status=docs.status,
			sensors=docs.sensors,
			config=docs.config,
			report=payload.sensors,
			now=now,
			policy=self.policy,
		)
		await self.store.write(zone, sensors=outcome.sensors, status=outcome.status)

		logger.info(
			"sensor_report",
			zone_id=zone.id,
			pump=outcome.status.pump.value,
			tank_level=outcome.sensors.tank_level,
			soil_moisture=outcome.sensors.soil_moisture,
			delivered_command=outcome.delivered_command,
		)
		if outcome.status.pump == PumpStateEnum.locked and docs.status.pump != PumpStateEnum.locked:
			logger.warning("pump_locked", zone_id=zone.id, tank_level=outcome.sensors.tank_level)

		if outcome.event is not None:
			await self.recorder.record(zone, outcome.event)
		return SensorDataResponse(success=True, commands=outcome.commands)

	async def poll_commands(self, zone_id: int) -> CommandPollResponse:
		zone = await self._require_paired(zone_id)
		docs = self.store.documents(zone)
		outcome = consume_commands(
			status=docs.status,
			sensors=docs.sensors,
			config=docs.config,
			policy=self.policy,
		)
		if outcome.delivered_command is not None:
			await self.store.write(zone, status=outcome.status)
			logger.info("command_delivered", zone_id=zone.id, pump_state=outcome.delivered_command)

		return CommandPollResponse(
			zone_id=zone.id,
			current_pump_status=outcome.status.pump,
			**outcome.commands.model_dump(),
		)

	async def heartbeat(self, zone_id: int) -> HeartbeatResponse:
		zone = await self._require_paired(zone_id)
		status = self.store.documents(zone).status
		status = status.model_copy(
			update={
				"connection": ConnectionStateEnum.online,
				"last_update": datetime.now(UTC),
			}
		)
		await self.store.write(zone, status=status)
		return HeartbeatResponse(success=True)

	async def connection_status(self, zone_id: int) -> ConnectionStatusResponse:
		zone = await self.store.require(zone_id)
		status = self.store.documents(zone).status
		connected, elapsed = connection_liveness(
			status.last_update,
			datetime.now(UTC),
			self.settings.connection_stale_seconds,
		)

		if not connected and status.connection != ConnectionStateEnum.offline:
			await self.store.write(
				zone,
				status=status.model_copy(update={"connection": ConnectionStateEnum.offline}),
			)
			logger.info("device_offline", zone_id=zone.id, seconds_since_last_update=elapsed)

		return ConnectionStatusResponse(
			connected=connected,
			last_update=status.last_update,
			seconds_since_last_update=None if elapsed is None else round(elapsed),
		)

	async def _require_paired(self, zone_id: int) -> Zone:
		zone = await self.store.get(zone_id)
		if zone is None:
			logger.warning("pairing_required", zone_id=zone_id)
			raise PairingRequiredError(zone_id)
		return zone
