"""Redis-backed per-zone rate limiting."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agromind.config import get_settings
from agromind.middleware.context import extract_caller_kind, extract_request_zone_id, is_system_path


async def consume_zone_quota(redis_client: Any, zone_id: int, caller: str) -> dict[str, Any] | None:
	"""Count one request against the zone's window.

	Returns the 429 detail payload once the quota is exceeded, else ``None``.
	"""
	quota = get_settings().rate_limit_per_minute
	minute_bucket = datetime.now(UTC).strftime("%Y%m%d%H%M")
	key = f"ratelimit:zone:{zone_id}:{caller}:{minute_bucket}"
	current = await redis_client.incr(key)
	if current == 1:
		await redis_client.expire(key, 65)

	if current > quota:
		return {
			"error": "rate_limited",
			"message": "Zone request quota exceeded",
			"zoneId": zone_id,
			"caller": caller,
			"quota": quota,
		}
	return None


class RateLimitMiddleware(BaseHTTPMiddleware):
	"""Fixed one-minute window per zone and caller kind.

	Device and operator traffic are counted separately so a chatty device
	cannot starve the operator's manual commands.  Requests that name no
	zone in their path, and every request when redis is unavailable, pass
	through.  Body-addressed device reports are counted by their route.
	"""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		if is_system_path(request.url.path):
			return await call_next(request)

		zone_id = extract_request_zone_id(request)
		if zone_id is None:
			return await call_next(request)

		redis_client = getattr(request.app.state, "redis", None)
		if redis_client is None:
			return await call_next(request)

		detail = await consume_zone_quota(redis_client, zone_id, extract_caller_kind(request))
		if detail is not None:
			return JSONResponse(status_code=429, content={"detail": detail})

		return await call_next(request)
