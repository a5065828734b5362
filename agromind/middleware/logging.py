"""structlog setup and per-request logging with request/zone context."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from agromind.config import LogFormat, get_settings
from agromind.middleware.context import extract_caller_kind, extract_request_zone_id, is_system_path

_configured = False


def _add_service(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
	event_dict.setdefault("service", "agromind")
	return event_dict


def configure_structured_logging() -> None:
	"""Configure stdlib logging and structlog once per process."""
	global _configured
	if _configured:
		return

	settings = get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	shared_processors: list[Any] = [
		structlog.contextvars.merge_contextvars,
		structlog.stdlib.add_logger_name,
		structlog.processors.add_log_level,
		structlog.processors.TimeStamper(fmt="iso", utc=True),
		_add_service,
	]

	logging.basicConfig(level=log_level, format="%(message)s")
	renderer: Any = (
		structlog.processors.JSONRenderer()
		if settings.log_format == LogFormat.json
		else structlog.dev.ConsoleRenderer()
	)

	structlog.configure(
		processors=[
			*shared_processors,
			structlog.processors.format_exc_info,
			renderer,
		],
		wrapper_class=structlog.make_filtering_bound_logger(log_level),
		logger_factory=structlog.stdlib.LoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Bind ``x-request-id`` (and the zone/caller, when known) for every log line.

	Device polls arrive every few seconds per zone, so successful system
	probes are logged at debug level and everything else at info; 5xx
	responses are logged as errors.
	"""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
		request.state.request_id = request_id

		structlog.contextvars.clear_contextvars()
		context: dict[str, Any] = {
			"request_id": request_id,
			"caller": extract_caller_kind(request),
		}
		zone_id = extract_request_zone_id(request)
		if zone_id is not None:
			context["zone_id"] = zone_id
		structlog.contextvars.bind_contextvars(**context)

		logger = structlog.get_logger("agromind.request")
		start = time.perf_counter()

		try:
			response = await call_next(request)
		except Exception as exc:
			logger.exception(
				"http_request_failed",
				method=request.method,
				path=request.url.path,
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
				error=str(exc),
			)
			raise

		response.headers["x-request-id"] = request_id
		fields = {
			"method": request.method,
			"path": request.url.path,
			"status_code": response.status_code,
			"duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
		}
		if response.status_code >= 500:
			logger.error("http_request", **fields)
		elif is_system_path(request.url.path):
			logger.debug("http_request", **fields)
		else:
			logger.info("http_request", **fields)
		return response
