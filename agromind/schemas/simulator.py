"""Pydantic schemas for simulator control endpoints."""

from __future__ import annotations

from pydantic import Field

from agromind.schemas.zone import CamelModel


class SimulatorStatus(CamelModel):
	zone_id: int
	running: bool
	changed: bool


class SimulatorListRead(CamelModel):
	active_zone_ids: list[int] = Field(default_factory=list)
	tick_seconds: float
