"""Durable holder of every zone's three documents."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agromind.models.zone import Zone
from agromind.schemas.zone import ConfigDocument, SensorSnapshot, StatusDocument
from agromind.services.errors import ZoneNotFoundError


@dataclass(slots=True)
class ZoneDocuments:
	sensors: SensorSnapshot
	status: StatusDocument
	config: ConfigDocument


class ZoneStore:
	"""Reads and whole-document writes of zone rows.

	Documents are always reassigned as new dicts (never mutated in place) so
	the ORM sees the change and bumps the zone's version stamp.
	"""

	def __init__(self, db: AsyncSession):
		self.db = db

	async def get(self, zone_id: int) -> Zone | None:
		row = await self.db.execute(select(Zone).where(Zone.id == zone_id))
		return row.scalar_one_or_none()

	async def require(self, zone_id: int) -> Zone:
		zone = await self.get(zone_id)
		if zone is None:
			raise ZoneNotFoundError(zone_id)
		return zone

	async def list_for_user(self, user_id: int) -> list[Zone]:
		stmt = select(Zone).where(Zone.user_id == user_id).order_by(Zone.id.asc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def add(self, zone: Zone) -> Zone:
		self.db.add(zone)
		await self.db.flush()
		await self.db.refresh(zone)
		return zone

	async def delete(self, zone: Zone) -> None:
		await self.db.delete(zone)
		await self.db.flush()

	async def write(
		self,
		zone: Zone,
		*,
		sensors: SensorSnapshot | None = None,
		status: StatusDocument | None = None,
		config: ConfigDocument | None = None,
	) -> Zone:
		if sensors is not None:
			zone.sensors = sensors.to_document()
		if status is not None:
			zone.status = status.to_document()
		if config is not None:
			zone.config = config.to_document()
		await self.db.flush()
		return zone

	@staticmethod
	def documents(zone: Zone) -> ZoneDocuments:
		return ZoneDocuments(
			sensors=SensorSnapshot.model_validate(zone.sensors or {}),
			status=StatusDocument.model_validate(zone.status or {}),
			config=ConfigDocument.model_validate(zone.config or {}),
		)
