"""Synthetic device simulator driven through the real device poll path.

Each simulated zone behaves like the firmware: it keeps its own pump state,
perturbs its sensors once per tick, applies the same lock and auto-mode
hysteresis as the control engine, reports through ``DeviceService`` exactly
as a real device would, and then obeys the returned commands.

``SimulatorSupervisor`` owns one asyncio task per zone; tasks are started
and stopped explicitly and all of them are cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.orm.exc import StaleDataError

from agromind.config import Settings, get_settings
from agromind.models.enums import PumpStateEnum
from agromind.schemas.device import DeviceCommands, SensorDataRequest, SensorReport
from agromind.schemas.zone import ConfigDocument, SensorSnapshot
from agromind.services.device_service import DeviceService
from agromind.services.errors import ZoneNotFoundError
from agromind.services.reconciliation import (
	ControlPolicy,
	evaluate_auto_mode,
	resolve_pump_state,
	sync_tank_aliases,
)
from agromind.services.zone_store import ZoneStore

logger = structlog.get_logger("agromind.simulator")

SEED_READINGS: dict[str, float] = {
	"soil_moisture": 50.0,
	"tank_level": 100.0,
	"temperature": 22.0,
	"humidity": 60.0,
	"light_level": 50.0,
}


def _clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


@dataclass(slots=True)
class TickResult:
	report: SensorReport
	pump: PumpStateEnum


def simulate_tick(
	pump: PumpStateEnum,
	sensors: SensorSnapshot,
	config: ConfigDocument,
	*,
	rng: random.Random,
	hour: int,
	policy: ControlPolicy,
	daylight: tuple[int, int] = (6, 18),
) -> TickResult:
	"""Advance one simulated device by one tick."""
	current = sync_tank_aliases(sensors.model_copy())
	readings = {
		key: getattr(current, key) if getattr(current, key) is not None else default
		for key, default in SEED_READINGS.items()
	}

	temperature = round(_clamp(readings["temperature"] + rng.uniform(-0.25, 0.25), 15.0, 40.0), 1)
	humidity = round(_clamp(readings["humidity"] + rng.uniform(-1.0, 1.0), 20.0, 100.0), 1)

	light_level = readings["light_level"]
	if daylight[0] <= hour <= daylight[1]:
		light_level = min(100.0, light_level + rng.uniform(0.0, 5.0))
	else:
		light_level = max(0.0, light_level - rng.uniform(0.0, 5.0))
	light_level = float(round(light_level))

	soil_moisture = readings["soil_moisture"]
	tank_level = readings["tank_level"]
	if pump == PumpStateEnum.on:
		soil_moisture = min(100.0, soil_moisture + 3.0)
		tank_level = max(0.0, tank_level - 0.8)
	else:
		soil_moisture = max(0.0, soil_moisture - 0.2)
	soil_moisture = round(soil_moisture, 1)
	tank_level = round(tank_level, 1)

	next_pump = resolve_pump_state(pump, pump == PumpStateEnum.on, tank_level, policy)
	next_pump = evaluate_auto_mode(next_pump, soil_moisture, config, policy)

	report = SensorReport(
		temperature=temperature,
		humidity=humidity,
		light_level=light_level,
		soil_moisture=soil_moisture,
		tank_level=tank_level,
		water_level=tank_level,
		pump_status=next_pump == PumpStateEnum.on,
	)
	return TickResult(report=report, pump=next_pump)


def apply_commands(pump: PumpStateEnum, commands: DeviceCommands) -> PumpStateEnum:
	"""React to a poll response the way the firmware does."""
	if commands.tank_locked:
		return PumpStateEnum.locked
	if pump == PumpStateEnum.locked:
		return PumpStateEnum.off
	if commands.pump_state is None:
		return pump
	return PumpStateEnum.on if commands.pump_state else PumpStateEnum.off


class SimulatorSupervisor:
	"""Owns the zone-id-keyed collection of simulator tasks."""

	def __init__(
		self,
		session_factory: Callable[[], Any],
		*,
		settings: Settings | None = None,
		redis_client: Any | None = None,
		rng: random.Random | None = None,
		clock: Callable[[], datetime] | None = None,
	):
		self.session_factory = session_factory
		self.settings = settings or get_settings()
		self.redis_client = redis_client
		self.policy = ControlPolicy.from_settings(self.settings)
		self.rng = rng or random.Random()
		self.clock = clock or (lambda: datetime.now().astimezone())
		self._tasks: dict[int, asyncio.Task[None]] = {}
		self._device_pump: dict[int, PumpStateEnum] = {}

	def is_running(self, zone_id: int) -> bool:
		task = self._tasks.get(zone_id)
		return task is not None and not task.done()

	def active_zone_ids(self) -> list[int]:
		return sorted(zone_id for zone_id in self._tasks if self.is_running(zone_id))

	def start(self, zone_id: int) -> bool:
		if self.is_running(zone_id):
			logger.info("simulator_already_running", zone_id=zone_id)
			return False
		self._tasks[zone_id] = asyncio.create_task(
			self._run(zone_id),
			name=f"simulator:{zone_id}",
		)
		logger.info("simulator_started", zone_id=zone_id, tick_seconds=self.settings.simulator_tick_seconds)
		return True

	async def stop(self, zone_id: int) -> bool:
		task = self._tasks.pop(zone_id, None)
		self._device_pump.pop(zone_id, None)
		if task is None:
			return False
		task.cancel()
		try:
			await task
		except asyncio.CancelledError:
			pass
		logger.info("simulator_stopped", zone_id=zone_id)
		return True

	async def stop_all(self) -> None:
		for zone_id in list(self._tasks):
			await self.stop(zone_id)

	async def tick(self, zone_id: int) -> bool:
		"""Run one simulated device cycle; ``False`` once the zone is gone."""
		async with self.session_factory() as session:
			store = ZoneStore(session)
			zone = await store.get(zone_id)
			if zone is None:
				return False

			docs = store.documents(zone)
			pump = self._device_pump.get(zone_id, docs.status.pump)
			result = simulate_tick(
				pump,
				docs.sensors,
				docs.config,
				rng=self.rng,
				hour=self.clock().hour,
				policy=self.policy,
				daylight=(
					self.settings.simulator_daylight_start_hour,
					self.settings.simulator_daylight_end_hour,
				),
			)

			service = DeviceService(session, self.redis_client, self.settings)
			try:
				response = await service.report_sensors(
					SensorDataRequest(zone_id=zone_id, sensors=result.report)
				)
				await session.commit()
			except ZoneNotFoundError:
				await session.rollback()
				return False
			except Exception:
				await session.rollback()
				raise

		self._device_pump[zone_id] = apply_commands(result.pump, response.commands)
		return True

	async def _run(self, zone_id: int) -> None:
		try:
			while True:
				try:
					alive = await self.tick(zone_id)
				except StaleDataError:
					logger.info("simulator_tick_conflict", zone_id=zone_id)
					alive = True
				except Exception as exc:
					logger.exception("simulator_tick_failed", zone_id=zone_id, error=str(exc))
					alive = True
				if not alive:
					logger.info("simulator_zone_missing", zone_id=zone_id)
					break
				await asyncio.sleep(self.settings.simulator_tick_seconds)
		finally:
			if self._tasks.get(zone_id) is asyncio.current_task():
				self._tasks.pop(zone_id, None)
				self._device_pump.pop(zone_id, None)
