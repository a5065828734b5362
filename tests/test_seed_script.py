from __future__ import annotations

from types import SimpleNamespace

from agromind.models.enums import ZoneTypeEnum
from scripts.seed_db import _demo_zones, _should_seed


def test_demo_zones_contract() -> None:
    zones = _demo_zones(5)
    assert len(zones) == 2
    assert {zone.user_id for zone in zones} == {5}
    assert [zone.zone_type for zone in zones] == [ZoneTypeEnum.outdoor, ZoneTypeEnum.greenhouse]
    assert zones[0].config is not None and zones[0].config.auto_mode is True


def test_should_seed_only_empty_accounts() -> None:
    assert _should_seed([]) is True
    assert _should_seed([SimpleNamespace(id=1)]) is False
