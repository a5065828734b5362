"""Shared pytest fixtures — async test client, fake DB session, fake Redis."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from agromind.database import get_db
from agromind.main import app
from agromind.models.enums import ZoneTypeEnum
from agromind.models.events import Event
from agromind.models.zone import Zone

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeResult:
	"""Mimics the parts of a SQLAlchemy ``Result`` the services touch."""

	def __init__(self, rows: list[Any] | None = None, rowcount: int = 0) -> None:
		self.rows = rows or []
		self.rowcount = rowcount

	def scalar_one_or_none(self) -> Any:
		return self.rows[0] if self.rows else None

	def scalars(self) -> FakeResult:
		return self

	def all(self) -> list[Any]:
		return list(self.rows)


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock(return_value=FakeResult())
		self.flush = AsyncMock()
		self.refresh = AsyncMock(side_effect=self._refresh)
		self.delete = AsyncMock()
		self.add = MagicMock()
		self.savepoints = 0
		self._next_id = 100

	@asynccontextmanager
	async def begin_nested(self) -> AsyncGenerator[None, None]:
		self.savepoints += 1
		yield

	async def _refresh(self, obj: Any) -> None:
		if getattr(obj, "id", None) is None:
			self._next_id += 1
			obj.id = self._next_id
		if getattr(obj, "created_at", None) is None:
			obj.created_at = FIXED_NOW
		if isinstance(obj, Zone) and obj.updated_at is None:
			obj.updated_at = FIXED_NOW

	def returning(self, *rows: Any) -> None:
		self.execute.return_value = FakeResult(list(rows))

	def added_events(self) -> list[Event]:
		return [call.args[0] for call in self.add.call_args_list if isinstance(call.args[0], Event)]


class FakeRedis:
	def __init__(self) -> None:
		self.publish = AsyncMock()
		self.ping = AsyncMock(return_value=True)
		self._counter: dict[str, int] = {}
		self.incr = AsyncMock(side_effect=self._incr)
		self.expire = AsyncMock(return_value=True)

	async def _incr(self, key: str) -> int:
		value = self._counter.get(key, 0) + 1
		self._counter[key] = value
		return value

	def reset_counters(self) -> None:
		self._counter.clear()


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides and services."""
	return FakeAsyncSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Reusable fake Redis client with async publish and counter behavior."""
	return FakeRedis()


@pytest.fixture
def make_zone() -> Callable[..., Zone]:
	"""Build a detached zone row with the given documents."""

	def _make(
		*,
		zone_id: int = 7,
		user_id: int = 1,
		sensors: dict[str, Any] | None = None,
		status: dict[str, Any] | None = None,
		config: dict[str, Any] | None = None,
	) -> Zone:
		return Zone(
			id=zone_id,
			user_id=user_id,
			name="Jardin",
			zone_type=ZoneTypeEnum.outdoor,
			sensors=sensors if sensors is not None else {"soilMoisture": 40.0, "tankLevel": 50.0, "waterLevel": 50.0},
			status=status if status is not None else {"pump": "OFF", "connection": "ONLINE", "hasSensorData": True},
			config=config if config is not None else {"autoMode": False, "moistureThreshold": 30.0, "wateringDuration": 10},
			version=1,
			created_at=FIXED_NOW,
			updated_at=FIXED_NOW,
		)

	return _make


@pytest.fixture
async def client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and DB dependency mocked."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()
	for attr in ("redis", "simulator"):
		if hasattr(app.state, attr):
			delattr(app.state, attr)
