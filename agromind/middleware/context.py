"""Request classification helpers shared by the HTTP middlewares."""

from __future__ import annotations

import re

from fastapi import Request

_ZONE_PATH = re.compile(
	r"/api/v1/(?:zones|simulator|iot/(?:commands|heartbeat|connection-status))/(\d+)(?:/|$)"
)


def extract_request_zone_id(request: Request) -> int | None:
	token = request.path_params.get("zone_id")
	if token is not None:
		try:
			return int(token)
		except (TypeError, ValueError):
			return None

	match = _ZONE_PATH.search(request.url.path)
	if match is None:
		return None
	return int(match.group(1))


def extract_caller_kind(request: Request) -> str:
	"""``device`` for firmware poll traffic, ``operator`` for everything else."""
	if request.url.path.startswith("/api/v1/iot"):
		return "device"
	return "operator"


def is_system_path(path: str) -> bool:
	return path.startswith(("/docs", "/redoc", "/openapi", "/health"))
