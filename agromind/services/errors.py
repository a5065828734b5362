"""Domain exceptions raised by zone, device and control services.

Routers translate these at the edge: lookups become 404, rejected pump
commands become 400 with the offending tank level, and the pairing case
becomes a 404 the firmware recognises as "re-provision this device".
"""

from __future__ import annotations


class ZoneNotFoundError(LookupError):
	"""No zone record exists for the requested id."""

	def __init__(self, zone_id: int) -> None:
		super().__init__(f"Zone {zone_id} not found")
		self.zone_id = zone_id


class PairingRequiredError(ZoneNotFoundError):
	"""A device addressed a zone id that has no record; it must re-provision."""


class PumpCommandRejectedError(ValueError):
	"""A manual pump instruction violates the tank safety rules."""

	def __init__(self, code: str, message: str, tank_level: float | None) -> None:
		super().__init__(message)
		self.code = code
		self.message = message
		self.tank_level = tank_level
