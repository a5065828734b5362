from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from agromind.models.enums import ConnectionStateEnum, EventTypeEnum, PumpActionEnum, PumpStateEnum
from agromind.schemas.device import SensorReport
from agromind.schemas.zone import ConfigDocument, SensorSnapshot, StatusDocument
from agromind.services.errors import PumpCommandRejectedError
from agromind.services.reconciliation import (
    ControlPolicy,
    apply_manual_command,
    build_commands,
    classify_transition,
    connection_liveness,
    consume_commands,
    diff_config,
    evaluate_auto_mode,
    merge_sensors,
    reconcile_report,
    resolve_pump_state,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
POLICY = ControlPolicy()


def _report(
    status: StatusDocument,
    sensors: SensorSnapshot,
    report: SensorReport,
    config: ConfigDocument | None = None,
):
    return reconcile_report(
        status=status,
        sensors=sensors,
        config=config or ConfigDocument(),
        report=report,
        now=NOW,
        policy=POLICY,
    )


# ── Sensor merge ────────────────────────────────────────────────────────────


def test_merge_keeps_omitted_soil_moisture() -> None:
    merged = merge_sensors(SensorSnapshot(soil_moisture=40.0), SensorReport())
    assert merged.soil_moisture == 40.0


def test_merge_treats_null_as_carry_forward() -> None:
    merged = merge_sensors(
        SensorSnapshot(soil_moisture=40.0, temperature=21.0),
        SensorReport.model_validate({"soilMoisture": None, "temperature": 23.5}),
    )
    assert merged.soil_moisture == 40.0
    assert merged.temperature == 23.5


@pytest.mark.parametrize(
    "payload",
    [{"waterLevel": 62.0}, {"tankLevel": 62.0}],
)
def test_tank_and_water_level_stay_equal(payload: dict[str, float]) -> None:
    merged = merge_sensors(SensorSnapshot(tank_level=80.0, water_level=80.0), SensorReport.model_validate(payload))
    assert merged.tank_level == 62.0
    assert merged.water_level == 62.0


def test_tank_level_wins_when_both_aliases_disagree() -> None:
    merged = merge_sensors(SensorSnapshot(), SensorReport(tank_level=30.0, water_level=70.0))
    assert merged.tank_level == merged.water_level == 30.0


def test_percent_readings_are_clamped() -> None:
    merged = merge_sensors(SensorSnapshot(), SensorReport(soil_moisture=140.0, tank_level=-3.0, humidity=101.0))
    assert merged.soil_moisture == 100.0
    assert merged.tank_level == 0.0
    assert merged.humidity == 100.0


def test_merge_preserves_unknown_sensor_keys() -> None:
    previous = SensorSnapshot.model_validate({"soilMoisture": 40.0, "rainSensor": True})
    merged = merge_sensors(previous, SensorReport(temperature=20.0))
    assert merged.to_document()["rainSensor"] is True


# ── Lock hysteresis ─────────────────────────────────────────────────────────


@pytest.mark.parametrize("tank_level", [0.0, 2.5, 5.0])
@pytest.mark.parametrize("reported_on", [True, False, None])
@pytest.mark.parametrize("previous", list(PumpStateEnum))
def test_low_tank_always_locks(tank_level: float, reported_on: bool | None, previous: PumpStateEnum) -> None:
    assert resolve_pump_state(previous, reported_on, tank_level, POLICY) == PumpStateEnum.locked


def test_lock_holds_until_recovery_level() -> None:
    assert resolve_pump_state(PumpStateEnum.locked, False, 8.0, POLICY) == PumpStateEnum.locked
    assert resolve_pump_state(PumpStateEnum.locked, True, 10.0, POLICY) == PumpStateEnum.locked
    assert resolve_pump_state(PumpStateEnum.locked, False, 10.5, POLICY) == PumpStateEnum.off


def test_unlocked_pump_between_thresholds_follows_device() -> None:
    assert resolve_pump_state(PumpStateEnum.off, True, 8.0, POLICY) == PumpStateEnum.on


def test_missing_pump_status_carries_forward() -> None:
    assert resolve_pump_state(PumpStateEnum.on, None, 50.0, POLICY) == PumpStateEnum.on
    assert resolve_pump_state(PumpStateEnum.locked, None, 50.0, POLICY) == PumpStateEnum.off


def test_unknown_tank_level_never_locks() -> None:
    assert resolve_pump_state(PumpStateEnum.off, True, None, POLICY) == PumpStateEnum.on


# ── Auto-mode hysteresis ────────────────────────────────────────────────────


AUTO = ConfigDocument(auto_mode=True, moisture_threshold=30.0)


def test_auto_mode_starts_below_threshold() -> None:
    assert evaluate_auto_mode(PumpStateEnum.off, 29.9, AUTO, POLICY) == PumpStateEnum.on


def test_auto_mode_stops_above_deadband() -> None:
    assert evaluate_auto_mode(PumpStateEnum.on, 55.1, AUTO, POLICY) == PumpStateEnum.off


@pytest.mark.parametrize("moisture", [30.0, 31.0, 42.0, 54.9, 55.0])
def test_auto_mode_deadband_is_stable(moisture: float) -> None:
    assert evaluate_auto_mode(PumpStateEnum.on, moisture, AUTO, POLICY) == PumpStateEnum.on
    assert evaluate_auto_mode(PumpStateEnum.off, moisture, AUTO, POLICY) == PumpStateEnum.off


def test_auto_mode_ignored_when_disabled_or_locked() -> None:
    manual = ConfigDocument(auto_mode=False, moisture_threshold=30.0)
    assert evaluate_auto_mode(PumpStateEnum.off, 5.0, manual, POLICY) == PumpStateEnum.off
    assert evaluate_auto_mode(PumpStateEnum.locked, 5.0, AUTO, POLICY) == PumpStateEnum.locked


# ── Transition events ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("previous", "current", "auto_mode", "expected"),
    [
        (PumpStateEnum.off, PumpStateEnum.on, True, EventTypeEnum.auto_watering_started),
        (PumpStateEnum.off, PumpStateEnum.on, False, EventTypeEnum.manual_watering_started),
        (PumpStateEnum.on, PumpStateEnum.off, True, EventTypeEnum.auto_watering_ended),
        (PumpStateEnum.on, PumpStateEnum.off, False, EventTypeEnum.manual_watering_ended),
        (PumpStateEnum.on, PumpStateEnum.locked, True, EventTypeEnum.tank_alarm),
        (PumpStateEnum.off, PumpStateEnum.locked, False, EventTypeEnum.tank_alarm),
        (PumpStateEnum.locked, PumpStateEnum.off, False, EventTypeEnum.pump_unlocked),
        (PumpStateEnum.locked, PumpStateEnum.on, True, EventTypeEnum.auto_watering_started),
    ],
)
def test_transition_maps_to_one_event(
    previous: PumpStateEnum,
    current: PumpStateEnum,
    auto_mode: bool,
    expected: EventTypeEnum,
) -> None:
    draft = classify_transition(previous, current, auto_mode=auto_mode, tank_level=40.0)
    assert draft is not None
    assert draft.type == expected
    assert draft.metadata["previousPump"] == previous.value
    assert draft.metadata["pump"] == current.value


@pytest.mark.parametrize("state", list(PumpStateEnum))
def test_no_transition_no_event(state: PumpStateEnum) -> None:
    assert classify_transition(state, state, auto_mode=True, tank_level=40.0) is None


# ── Device report path ──────────────────────────────────────────────────────


def test_low_tank_report_locks_and_raises_alarm() -> None:
    outcome = _report(
        StatusDocument(pump=PumpStateEnum.on),
        SensorSnapshot(tank_level=50.0),
        SensorReport(tank_level=4.0, pump_status=True),
    )
    assert outcome.status.pump == PumpStateEnum.locked
    assert outcome.commands.tank_locked is True
    assert outcome.event is not None
    assert outcome.event.type == EventTypeEnum.tank_alarm
    assert outcome.event.metadata["tankLevel"] == 4.0


def test_report_marks_device_online() -> None:
    outcome = _report(StatusDocument(), SensorSnapshot(), SensorReport(soil_moisture=35.0))
    assert outcome.status.connection == ConnectionStateEnum.online
    assert outcome.status.last_update == NOW
    assert outcome.status.has_sensor_data is True


def test_report_delivers_and_clears_pending_command() -> None:
    outcome = _report(
        StatusDocument(manual_pump_command=True),
        SensorSnapshot(tank_level=50.0),
        SensorReport(pump_status=False),
    )
    assert outcome.commands.pump_state is True
    assert outcome.delivered_command is True
    assert outcome.status.manual_pump_command is None


def test_report_without_pending_command_lets_device_decide() -> None:
    outcome = _report(StatusDocument(), SensorSnapshot(tank_level=50.0), SensorReport(pump_status=False))
    assert outcome.commands.pump_state is None
    assert outcome.event is None


def test_pending_on_is_dropped_when_tank_locks() -> None:
    outcome = _report(
        StatusDocument(manual_pump_command=True),
        SensorSnapshot(tank_level=50.0),
        SensorReport(tank_level=3.0),
    )
    assert outcome.commands.pump_state is None
    assert outcome.commands.tank_locked is True
    assert outcome.status.manual_pump_command is None


def test_report_passes_config_through() -> None:
    config = ConfigDocument(auto_mode=True, moisture_threshold=42.0, watering_duration=15)
    outcome = _report(StatusDocument(), SensorSnapshot(), SensorReport(), config)
    assert outcome.commands.auto_mode is True
    assert outcome.commands.moisture_threshold == 42.0
    assert outcome.commands.watering_duration == 15


def test_pump_stopping_records_last_watered() -> None:
    outcome = _report(
        StatusDocument(pump=PumpStateEnum.on),
        SensorSnapshot(tank_level=50.0),
        SensorReport(pump_status=False),
    )
    assert outcome.status.last_watered == NOW


# ── Commands-only poll ──────────────────────────────────────────────────────


def test_poll_consumes_once_then_returns_null() -> None:
    first = consume_commands(
        status=StatusDocument(manual_pump_command=True),
        sensors=SensorSnapshot(tank_level=50.0),
        config=ConfigDocument(),
        policy=POLICY,
    )
    second = consume_commands(
        status=first.status,
        sensors=SensorSnapshot(tank_level=50.0),
        config=ConfigDocument(),
        policy=POLICY,
    )
    assert first.commands.pump_state is True
    assert second.commands.pump_state is None
    assert second.delivered_command is None


def test_poll_reports_lock_from_water_level_alias() -> None:
    outcome = consume_commands(
        status=StatusDocument(),
        sensors=SensorSnapshot(water_level=4.0),
        config=ConfigDocument(),
        policy=POLICY,
    )
    assert outcome.commands.tank_locked is True


# ── Manual command path ─────────────────────────────────────────────────────


def test_manual_on_is_queued_as_pending() -> None:
    outcome = apply_manual_command(
        status=StatusDocument(),
        sensors=SensorSnapshot(tank_level=50.0),
        action=PumpActionEnum.on,
        now=NOW,
        policy=POLICY,
    )
    assert outcome.status.manual_pump_command is True
    assert outcome.event.type == EventTypeEnum.manual_watering_started
    assert outcome.event.metadata["pending"] is True


def test_manual_on_rejected_when_locked() -> None:
    with pytest.raises(PumpCommandRejectedError) as exc_info:
        apply_manual_command(
            status=StatusDocument(pump=PumpStateEnum.locked),
            sensors=SensorSnapshot(tank_level=50.0),
            action=PumpActionEnum.on,
            now=NOW,
            policy=POLICY,
        )
    assert exc_info.value.code == "pump_locked"
    assert exc_info.value.tank_level == 50.0


def test_manual_on_rejected_when_tank_empty() -> None:
    with pytest.raises(PumpCommandRejectedError) as exc_info:
        apply_manual_command(
            status=StatusDocument(),
            sensors=SensorSnapshot(water_level=5.0),
            action=PumpActionEnum.on,
            now=NOW,
            policy=POLICY,
        )
    assert exc_info.value.code == "tank_empty"
    assert exc_info.value.tank_level == 5.0


def test_manual_off_allowed_while_locked() -> None:
    outcome = apply_manual_command(
        status=StatusDocument(pump=PumpStateEnum.locked),
        sensors=SensorSnapshot(tank_level=2.0),
        action=PumpActionEnum.off,
        now=NOW,
        policy=POLICY,
    )
    assert outcome.status.manual_pump_command is False


def test_second_manual_command_overwrites_first() -> None:
    first = apply_manual_command(
        status=StatusDocument(),
        sensors=SensorSnapshot(tank_level=50.0),
        action=PumpActionEnum.on,
        now=NOW,
        policy=POLICY,
    )
    second = apply_manual_command(
        status=first.status,
        sensors=SensorSnapshot(tank_level=50.0),
        action=PumpActionEnum.off,
        now=NOW,
        policy=POLICY,
    )
    assert second.status.manual_pump_command is False
    assert second.event.metadata["replacedCommand"] is True


def test_manual_off_while_running_sets_last_watered() -> None:
    outcome = apply_manual_command(
        status=StatusDocument(pump=PumpStateEnum.on),
        sensors=SensorSnapshot(tank_level=50.0),
        action=PumpActionEnum.off,
        now=NOW,
        policy=POLICY,
    )
    assert outcome.status.last_watered == NOW


# ── Config diff and liveness ────────────────────────────────────────────────


def test_config_diff_emits_one_event_per_changed_field() -> None:
    old = ConfigDocument(auto_mode=False, moisture_threshold=30.0, watering_duration=10)
    new = ConfigDocument(auto_mode=True, moisture_threshold=35.0, watering_duration=10)
    drafts = diff_config(old, new)
    assert [draft.metadata["field"] for draft in drafts] == ["autoMode", "moistureThreshold"]
    assert all(draft.type == EventTypeEnum.config_changed for draft in drafts)
    assert drafts[1].metadata == {"field": "moistureThreshold", "old": 30.0, "new": 35.0}


def test_config_diff_ignores_unchanged() -> None:
    assert diff_config(ConfigDocument(), ConfigDocument()) == []


def test_liveness_window() -> None:
    assert connection_liveness(NOW - timedelta(seconds=10), NOW, 30) == (True, 10.0)
    assert connection_liveness(NOW - timedelta(seconds=31), NOW, 30) == (False, 31.0)
    assert connection_liveness(None, NOW, 30) == (False, None)


def test_build_commands_passes_pending_off_even_when_locked() -> None:
    commands = build_commands(False, ConfigDocument(), tank_locked=True)
    assert commands.pump_state is False
    assert commands.tank_locked is True
