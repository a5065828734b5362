"""Append-only audit trail: recording, listing and retention pruning."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agromind.models.events import Event
from agromind.schemas.events import EventCreate, EventRead
from agromind.services.reconciliation import EventDraft

logger = structlog.get_logger("agromind.events")


class EventRecorder:
	"""Writes one immutable row per recorded transition.

	``record`` is fire-and-forget from the caller's point of view: the insert
	runs inside a savepoint, and any failure is logged and swallowed so the
	device poll or manual command that triggered it still succeeds.
	"""

	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	async def record(self, zone: Any, draft: EventDraft) -> Event | None:
		try:
			async with self.db.begin_nested():
				event = Event(
					user_id=zone.user_id,
					zone_id=zone.id,
					type=draft.type.value,
					description=draft.description,
					metadata_=draft.metadata or None,
				)
				self.db.add(event)
				await self.db.flush()
		except Exception as exc:
			logger.warning(
				"event_record_failed",
				zone_id=zone.id,
				event_type=draft.type.value,
				error=str(exc),
			)
			return None

		await self._publish(event)
		return event

	async def record_all(self, zone: Any, drafts: list[EventDraft]) -> list[Event]:
		recorded: list[Event] = []
		for draft in drafts:
			event = await self.record(zone, draft)
			if event is not None:
				recorded.append(event)
		return recorded

	async def create(self, payload: EventCreate) -> Event:
		event = Event(
			user_id=payload.user_id,
			zone_id=payload.zone_id,
			type=payload.type,
			description=payload.description,
			metadata_=payload.metadata,
		)
		self.db.add(event)
		await self.db.flush()
		await self.db.refresh(event)
		await self._publish(event)
		return event

	async def list_events(
		self,
		user_id: int,
		*,
		zone_id: int | None = None,
		event_type: str | None = None,
		limit: int = 50,
		offset: int = 0,
	) -> list[Event]:
		stmt = select(Event).where(Event.user_id == user_id)
		if zone_id is not None:
			stmt = stmt.where(Event.zone_id == zone_id)
		if event_type is not None:
			stmt = stmt.where(Event.type == event_type)
		stmt = stmt.order_by(Event.created_at.desc(), Event.id.desc()).limit(limit).offset(offset)
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def prune(self, user_id: int, older_than_days: int) -> int:
		if older_than_days < 0:
			raise ValueError("older_than_days must be zero or positive")
		cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
		result = await self.db.execute(
			delete(Event).where(Event.user_id == user_id, Event.created_at < cutoff)
		)
		deleted = int(result.rowcount or 0)
		logger.info("events_pruned", user_id=user_id, older_than_days=older_than_days, deleted=deleted)
		return deleted

	@staticmethod
	def to_read(event: Event) -> EventRead:
		return EventRead(
			id=event.id,
			user_id=event.user_id,
			zone_id=event.zone_id,
			type=event.type,
			description=event.description,
			metadata=event.metadata_,
			timestamp=event.created_at,
		)

	async def _publish(self, event: Event) -> None:
		if self.redis_client is None:
			return
		channel = f"zone:{event.zone_id}:events"
		payload = {
			"event_type": event.type,
			"zone_id": event.zone_id,
			"user_id": event.user_id,
			"record_id": event.id,
			"description": event.description,
			"metadata": event.metadata_,
			"recorded_at": datetime.now(UTC).isoformat(),
		}
		try:
			await self.redis_client.publish(channel, json.dumps(payload, default=str))
		except Exception as exc:
			logger.warning("event_publish_failed", zone_id=event.zone_id, error=str(exc))
