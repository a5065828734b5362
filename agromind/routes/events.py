"""Audit event routes: history listing, operator entries, retention pruning."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from agromind.config import get_settings
from agromind.database import get_db
from agromind.schemas.events import EventCreate, EventListRead, EventPruneResponse, EventRead
from agromind.services.event_recorder import EventRecorder

router = APIRouter(prefix="/events", tags=["events"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="persistence failure")


@router.get("/{user_id}", response_model=EventListRead)
async def list_events(
	user_id: int,
	zone_id: int | None = Query(default=None, alias="zoneId"),
	event_type: str | None = Query(default=None, alias="type"),
	limit: int = Query(default=50, ge=1, le=500),
	offset: int = Query(default=0, ge=0),
	db: AsyncSession = Depends(get_db),
) -> EventListRead:
	recorder = EventRecorder(db)
	try:
		events = await recorder.list_events(
			user_id,
			zone_id=zone_id,
			event_type=event_type,
			limit=limit,
			offset=offset,
		)
	except Exception as exc:
		raise _map_error(exc) from exc
	return EventListRead(items=[EventRecorder.to_read(event) for event in events])


@router.post("", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def create_event(
	payload: EventCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> EventRead:
	recorder = EventRecorder(db, getattr(request.app.state, "redis", None))
	try:
		event = await recorder.create(payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return EventRecorder.to_read(event)


@router.delete("/{user_id}", response_model=EventPruneResponse)
async def prune_events(
	user_id: int,
	older_than_days: int | None = Query(default=None, alias="olderThanDays"),
	db: AsyncSession = Depends(get_db),
) -> EventPruneResponse:
	days = get_settings().event_retention_days if older_than_days is None else older_than_days
	recorder = EventRecorder(db)
	try:
		deleted = await recorder.prune(user_id, days)
	except Exception as exc:
		raise _map_error(exc) from exc
	return EventPruneResponse(deleted=deleted, older_than_days=days)
