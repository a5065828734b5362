"""Device simulator control routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from agromind.database import get_db
from agromind.schemas.simulator import SimulatorListRead, SimulatorStatus
from agromind.services.simulator import SimulatorSupervisor
from agromind.services.zone_store import ZoneStore

router = APIRouter(prefix="/simulator", tags=["simulator"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="simulator failure")


def _supervisor(request: Request) -> SimulatorSupervisor:
	supervisor = getattr(request.app.state, "simulator", None)
	if supervisor is None:
		raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="simulator not running")
	return supervisor


@router.post("/{zone_id}/start", response_model=SimulatorStatus)
async def start_simulator(
	zone_id: int,
	db: AsyncSession = Depends(get_db),
	supervisor: SimulatorSupervisor = Depends(_supervisor),
) -> SimulatorStatus:
	try:
		await ZoneStore(db).require(zone_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	changed = supervisor.start(zone_id)
	return SimulatorStatus(zone_id=zone_id, running=True, changed=changed)


@router.post("/{zone_id}/stop", response_model=SimulatorStatus)
async def stop_simulator(
	zone_id: int,
	supervisor: SimulatorSupervisor = Depends(_supervisor),
) -> SimulatorStatus:
	changed = await supervisor.stop(zone_id)
	return SimulatorStatus(zone_id=zone_id, running=False, changed=changed)


@router.get("", response_model=SimulatorListRead)
async def list_simulators(
	supervisor: SimulatorSupervisor = Depends(_supervisor),
) -> SimulatorListRead:
	return SimulatorListRead(
		active_zone_ids=supervisor.active_zone_ids(),
		tick_seconds=supervisor.settings.simulator_tick_seconds,
	)
