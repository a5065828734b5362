"""Seed a demo user's sample irrigation zones.

Usage::

    python -m scripts.seed_db --user-id 1

Creates an outdoor garden and a greenhouse for the user when that user owns
no zones yet; running it again is a no-op.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Any

import structlog

from agromind.database import async_session_factory, engine
from agromind.middleware.logging import configure_structured_logging
from agromind.models.enums import ZoneTypeEnum
from agromind.schemas.zone import ConfigPatch, ZoneCreate
from agromind.services.zone_service import ZoneService

logger = structlog.get_logger("agromind.seed")


def _demo_zones(user_id: int) -> list[ZoneCreate]:
    return [
        ZoneCreate(
            user_id=user_id,
            name="Jardin principal",
            zone_type=ZoneTypeEnum.outdoor,
            config=ConfigPatch(auto_mode=True, moisture_threshold=30, watering_duration=10),
        ),
        ZoneCreate(
            user_id=user_id,
            name="Serre tomates",
            zone_type=ZoneTypeEnum.greenhouse,
            config=ConfigPatch(auto_mode=False, moisture_threshold=40, watering_duration=15),
        ),
    ]


def _should_seed(existing: list[Any]) -> bool:
    return len(existing) == 0


async def seed(user_id: int) -> list[int]:
    async with async_session_factory() as session:
        service = ZoneService(session)
        existing = await service.list_zones(user_id)
        if not _should_seed(existing):
            logger.info("seed_skipped", user_id=user_id, existing=len(existing))
            return [zone.id for zone in existing]

        created: list[int] = []
        for payload in _demo_zones(user_id):
            zone = await service.create_zone(payload)
            created.append(zone.id)
        await session.commit()

    logger.info("seed_complete", user_id=user_id, zone_ids=created)
    return created


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Seed demo irrigation zones")
    parser.add_argument("--user-id", type=int, default=1)
    args = parser.parse_args(argv)

    configure_structured_logging()
    try:
        await seed(args.user_id)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
