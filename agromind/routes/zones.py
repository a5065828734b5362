"""Zone CRUD and manual pump command routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from agromind.database import get_db
from agromind.schemas.zone import (
	PumpCommandRequest,
	PumpCommandResponse,
	ZoneCreate,
	ZoneDeleted,
	ZoneListRead,
	ZoneRead,
	ZoneUpdate,
)
from agromind.services.errors import PumpCommandRejectedError
from agromind.services.zone_service import ZoneService

router = APIRouter(prefix="/zones", tags=["zones"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StaleDataError):
		return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="zone_modified_concurrently")
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="persistence failure",
	)


@router.post("", response_model=ZoneRead, status_code=status.HTTP_201_CREATED)
async def create_zone(
	payload: ZoneCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> ZoneRead:
	service = ZoneService(db, getattr(request.app.state, "redis", None))
	try:
		zone = await service.create_zone(payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return ZoneService.to_read(zone)


@router.get("", response_model=ZoneListRead)
async def list_zones(
	user_id: int = Query(alias="userId"),
	db: AsyncSession = Depends(get_db),
) -> ZoneListRead:
	service = ZoneService(db)
	try:
		zones = await service.list_zones(user_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return ZoneListRead(items=[ZoneService.to_read(zone) for zone in zones])


@router.get("/{zone_id}", response_model=ZoneRead)
async def get_zone(
	zone_id: int,
	db: AsyncSession = Depends(get_db),
) -> ZoneRead:
	service = ZoneService(db)
	try:
		zone = await service.get_zone(zone_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return ZoneService.to_read(zone)


@router.put("/{zone_id}", response_model=ZoneRead)
async def update_zone(
	zone_id: int,
	payload: ZoneUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> ZoneRead:
	service = ZoneService(db, getattr(request.app.state, "redis", None))
	try:
		zone = await service.update_zone(zone_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return ZoneService.to_read(zone)


@router.delete("/{zone_id}", response_model=ZoneDeleted)
async def delete_zone(
	zone_id: int,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> ZoneDeleted:
	service = ZoneService(db, getattr(request.app.state, "redis", None))
	try:
		await service.delete_zone(zone_id)
	except Exception as exc:
		raise _map_error(exc) from exc

	simulator = getattr(request.app.state, "simulator", None)
	if simulator is not None:
		await simulator.stop(zone_id)
	return ZoneDeleted(id=zone_id, deleted=True)


@router.post("/{zone_id}/pump", response_model=PumpCommandResponse)
async def command_pump(
	zone_id: int,
	payload: PumpCommandRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> PumpCommandResponse:
	service = ZoneService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.command_pump(zone_id, payload)
	except PumpCommandRejectedError:
		raise
	except Exception as exc:
		raise _map_error(exc) from exc
