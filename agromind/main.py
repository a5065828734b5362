"""FastAPI application entrypoint — lifespan, routers, middleware."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from agromind.config import get_settings
from agromind.database import async_session_factory, engine
from agromind.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from agromind.middleware.rate_limit import RateLimitMiddleware
from agromind.routes import events, iot, simulator, zones
from agromind.services.errors import PairingRequiredError, PumpCommandRejectedError
from agromind.services.simulator import SimulatorSupervisor

logger = logging.getLogger("agromind")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Verify the database is reachable
      3. Connect to Redis (skipped when REDIS_URL is empty)
      4. Create the simulator supervisor and auto-start configured zones

    Shutdown:
      1. Cancel every simulator task
      2. Close Redis connection pool
      3. Dispose SQLAlchemy engine
    """
    configure_structured_logging()
    settings = get_settings()
    logger.info(
        "AgroMind starting",
        extra={
            "log_level": settings.log_level,
            "simulator_autostart": settings.simulator_autostart_zone_ids,
        },
    )

    redis: Redis | None = None
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))

        if settings.redis_url:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
        app.state.redis = redis

        supervisor = SimulatorSupervisor(
            async_session_factory,
            settings=settings,
            redis_client=redis,
        )
        app.state.simulator = supervisor
        for zone_id in settings.simulator_autostart_zone_ids:
            supervisor.start(zone_id)
    except Exception as exc:
        logger.exception("startup failure", extra={"error": str(exc)})
        raise

    yield

    logger.info("AgroMind shutting down")
    await app.state.simulator.stop_all()
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="AgroMind API",
    description=(
        "Irrigation zone control service. Reconciles device sensor reports "
        "and operator pump commands into a single authoritative pump state, "
        "with tank-safety locking, an audit event trail and a device simulator."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Middleware ──────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


# ── Domain error bodies read directly by firmware and the operator app ─────
@app.exception_handler(PairingRequiredError)
async def pairing_required_handler(_request: Request, exc: PairingRequiredError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": str(exc),
            "pairingRequired": True,
            "zoneId": exc.zone_id,
        },
    )


@app.exception_handler(PumpCommandRejectedError)
async def pump_rejected_handler(_request: Request, exc: PumpCommandRejectedError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": exc.code,
            "message": exc.message,
            "tankLevel": exc.tank_level,
        },
    )


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check — verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "agromind",
        "version": "0.1.0",
    }


async def _run_readiness_checks(app_: FastAPI) -> dict[str, dict[str, Any]]:
    checks: dict[str, dict[str, Any]] = {}

    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        checks["database"] = {"ok": True, "message": "ok"}
    except Exception as exc:
        checks["database"] = {"ok": False, "message": str(exc)}

    redis_client = getattr(app_.state, "redis", None)
    if redis_client is None:
        checks["redis"] = {"ok": True, "message": "disabled"}
    else:
        try:
            await redis_client.ping()
            checks["redis"] = {"ok": True, "message": "ok"}
        except Exception as exc:
            checks["redis"] = {"ok": False, "message": str(exc)}

    supervisor = getattr(app_.state, "simulator", None)
    if supervisor is None:
        checks["simulator"] = {"ok": False, "message": "supervisor not initialised"}
    else:
        active = supervisor.active_zone_ids()
        checks["simulator"] = {"ok": True, "message": f"{len(active)} active"}

    return checks


@app.get("/health/ready", tags=["system"])
async def readiness_check() -> JSONResponse:
    """Readiness probe covering database, redis and the simulator supervisor."""
    checks = await _run_readiness_checks(app)
    healthy = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )


# ── Router registration ────────────────────────────────────────────────────
app.include_router(zones.router, prefix="/api/v1")
app.include_router(iot.router, prefix="/api/v1")
app.include_router(events.router, prefix="/api/v1")
app.include_router(simulator.router, prefix="/api/v1")
