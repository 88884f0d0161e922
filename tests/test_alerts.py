from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np

sys.path.append(str(Path(__file__).resolve().parents[1]))

from fleetsim.sim.alerts import Alert, AlertDeriver, AlertType, NodeStatus, derive_status
from fleetsim.sim.patterns import HEADS
from fleetsim.sim.telemetry import (
    DeviceHealth,
    DoorState,
    HeadReading,
    HeadStatistics,
    Measurement,
    OperatingMode,
    PowerState,
    SignalColor,
)

NOW = datetime(2024, 5, 1, 10, 0)


def make_measurement(power_cut=False, healthy=(True, True), faults=(0, 0)) -> Measurement:
    stats = HeadStatistics(congestion=False, vehicle_volume=0.6, emergency_override=False, adapted_green_time=50)
    heads = tuple(
        HeadReading(head, SignalColor.RED, 225.0, 0.6, ok, count, stats)
        for head, ok, count in zip(HEADS, healthy, faults)
    )
    device = DeviceHealth(DoorState.CLOSED, PowerState.CUT if power_cut else PowerState.NORMAL, 90.0, 30.0)
    return Measurement(NOW, "API_1", 1, 10, OperatingMode.NORMAL, device, heads)


def make_alert(alert_id: str, age: timedelta) -> Alert:
    return Alert(alert_id, AlertType.FAULT, "API_1", NOW - age, occurrences=1)


def test_status_priority():
    assert derive_status(make_measurement(power_cut=True, healthy=(False, True))) is NodeStatus.OFFLINE
    assert derive_status(make_measurement(healthy=(False, True), faults=(1, 0))) is NodeStatus.ERROR
    assert derive_status(make_measurement(faults=(0, 2))) is NodeStatus.WARNING
    assert derive_status(make_measurement()) is NodeStatus.ACTIVE


def test_alert_emitted_on_transition_only():
    deriver = AlertDeriver(np.random.default_rng(0))
    status, alert = deriver.derive("API_1", NodeStatus.ACTIVE, make_measurement(healthy=(False, True)))
    assert status is NodeStatus.ERROR
    assert alert is not None and alert.type is AlertType.FAULT
    assert alert.node_id == "API_1" and alert.timestamp == NOW
    assert 1 <= alert.occurrences <= 10
    assert alert.head in HEADS
    assert alert.color in set(SignalColor)
    assert not alert.programmed

    status, alert = deriver.derive("API_1", NodeStatus.ERROR, make_measurement(healthy=(False, False)))
    assert status is NodeStatus.ERROR and alert is None

    status, alert = deriver.derive("API_1", NodeStatus.ERROR, make_measurement(faults=(1, 0)))
    assert status is NodeStatus.WARNING and alert.type is AlertType.INTERMITTENT_FAULT

    status, alert = deriver.derive("API_1", NodeStatus.WARNING, make_measurement(power_cut=True))
    assert status is NodeStatus.OFFLINE and alert.type is AlertType.POWER_LOSS

    status, alert = deriver.derive("API_1", NodeStatus.OFFLINE, make_measurement())
    assert status is NodeStatus.ACTIVE and alert is None


def test_alert_ids_are_unique():
    deriver = AlertDeriver(np.random.default_rng(0))
    ids = {deriver.derive("API_1", NodeStatus.ACTIVE, make_measurement(power_cut=True))[1].id for _ in range(5)}
    assert len(ids) == 5


def test_expire_drops_alerts_older_than_retention():
    deriver = AlertDeriver(np.random.default_rng(0))
    alerts = [
        make_alert("stale", timedelta(hours=2)),
        make_alert("fresh", timedelta(minutes=59)),
        make_alert("new", timedelta(0)),
    ]
    kept = deriver.expire(alerts, NOW)
    assert [a.id for a in kept] == ["fresh", "new"]


def test_mark_programmed_returns_copy():
    alert = make_alert("a", timedelta(0))
    programmed = alert.mark_programmed()
    assert programmed.programmed and not alert.programmed
    assert programmed.as_dict()["isProgrammed"] is True
