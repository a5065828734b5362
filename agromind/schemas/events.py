"""Pydantic schemas for audit event endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from agromind.schemas.zone import CamelModel


class EventCreate(CamelModel):
	user_id: int
	zone_id: int
	type: str = Field(min_length=1, max_length=50)
	description: str = Field(min_length=1, max_length=500)
	metadata: dict[str, Any] | None = None


class EventRead(CamelModel):
	id: int
	user_id: int
	zone_id: int
	type: str
	description: str
	metadata: dict[str, Any] | None = None
	timestamp: datetime


class EventListRead(CamelModel):
	items: list[EventRead] = Field(default_factory=list)


class EventPruneResponse(CamelModel):
	deleted: int
	older_than_days: int
