"""Device poll routes: sensor push, command pull, heartbeat and liveness."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from agromind.database import get_db
from agromind.middleware.rate_limit import consume_zone_quota
from agromind.schemas.device import (
	CommandPollResponse,
	ConnectionStatusResponse,
	DeviceHealthResponse,
	HeartbeatResponse,
	SensorDataRequest,
	SensorDataResponse,
)
from agromind.services.device_service import DeviceService
from agromind.services.errors import PairingRequiredError

router = APIRouter(prefix="/iot", tags=["iot"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StaleDataError):
		return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="zone_modified_concurrently")
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="persistence failure")


@router.post("/sensor-data", response_model=SensorDataResponse)
async def post_sensor_data(
	payload: SensorDataRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> SensorDataResponse:
	structlog.contextvars.bind_contextvars(zone_id=payload.zone_id)
	redis_client = getattr(request.app.state, "redis", None)
	if redis_client is not None:
		detail = await consume_zone_quota(redis_client, payload.zone_id, "device")
		if detail is not None:
			raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)

	service = DeviceService(db, redis_client)
	try:
		return await service.report_sensors(payload)
	except PairingRequiredError:
		raise
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/commands/{zone_id}", response_model=CommandPollResponse)
async def get_commands(
	zone_id: int,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> CommandPollResponse:
	service = DeviceService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.poll_commands(zone_id)
	except PairingRequiredError:
		raise
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/heartbeat/{zone_id}", response_model=HeartbeatResponse)
async def post_heartbeat(
	zone_id: int,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> HeartbeatResponse:
	service = DeviceService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.heartbeat(zone_id)
	except PairingRequiredError:
		raise
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/connection-status/{zone_id}", response_model=ConnectionStatusResponse)
async def get_connection_status(
	zone_id: int,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> ConnectionStatusResponse:
	service = DeviceService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.connection_status(zone_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/health", response_model=DeviceHealthResponse)
async def device_health() -> DeviceHealthResponse:
	return DeviceHealthResponse(timestamp=datetime.now(UTC))
