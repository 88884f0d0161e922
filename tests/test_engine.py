from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from fleetsim.errors import AlertAlreadyProgrammed, AlertNotFound, NodeNotFound
from fleetsim.maintenance.profiles import MaintenanceType, TaskStatus
from fleetsim.runtime.engine import SimulationConfig, SimulationEngine
from fleetsim.sim.alerts import Alert, AlertType, NodeStatus
from fleetsim.sim.fleet import Location
from fleetsim.sim.telemetry import FaultRates, OperatingMode

NIGHT = datetime(2024, 5, 1, 23, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_engine(clock: FakeClock, node_count: int = 4, faults: FaultRates | None = None, publish=None):
    config = SimulationConfig(node_count=node_count, seed=1, faults=faults or FaultRates())
    return SimulationEngine(config, rng=np.random.default_rng(1), clock=clock, publish=publish)


def test_tick_populates_every_node():
    clock = FakeClock(NIGHT)
    engine = make_engine(clock)
    snapshot = engine.tick()
    assert snapshot.tick == 1
    assert snapshot.timestamp == NIGHT
    assert len(snapshot.nodes) == 4
    assert all(node["measurement"]["timestamp"] == NIGHT.isoformat() for node in snapshot.nodes)
    stats = engine.statistics()
    assert stats["nodes"]["total"] == 4
    assert stats["traffic"]["currentPattern"] == "night"
    assert "health" in stats


def test_node_in_maintenance_for_full_window():
    clock = FakeClock(NIGHT)
    engine = make_engine(clock)
    start = NIGHT + timedelta(minutes=10)
    task = asyncio.run(engine.schedule_maintenance("API_1", MaintenanceType.ROUTINE, start=start))
    assert task.status is TaskStatus.SCHEDULED

    now = start
    while now < task.end:
        engine.tick(now)
        node = engine.fleet.get("API_1")
        assert task.status is TaskStatus.IN_PROGRESS
        assert node.measurement.mode is OperatingMode.MAINTENANCE
        assert node.status is not NodeStatus.ACTIVE
        now += timedelta(minutes=5)

    engine.tick(task.end)
    assert task.status is TaskStatus.COMPLETED
    assert engine.fleet.get("API_1").measurement.mode is OperatingMode.NORMAL


def test_stale_alerts_retired_on_next_tick():
    clock = FakeClock(NIGHT)
    engine = make_engine(clock)
    engine.tick(NIGHT)
    engine.alerts.append(Alert("stale", AlertType.FAULT, "API_2", NIGHT - timedelta(hours=2), 3))
    engine.alerts.append(Alert("recent", AlertType.FAULT, "API_2", NIGHT - timedelta(minutes=30), 1))
    snapshot = engine.tick(NIGHT + timedelta(seconds=5))
    ids = {alert["id"] for alert in snapshot.alerts}
    assert "stale" not in ids
    assert "recent" in ids
    node = next(n for n in snapshot.nodes if n["id"] == "API_2")
    assert "recent" in {a["id"] for a in node["alerts"]}


def test_failed_tick_keeps_previous_snapshot():
    clock = FakeClock(NIGHT)
    engine = make_engine(clock)
    asyncio.run(engine.step())
    before = engine.current_snapshot()

    def boom(*args, **kwargs):
        raise RuntimeError("sensor model exploded")

    engine.telemetry.generate = boom
    clock.now = NIGHT + timedelta(seconds=5)
    assert asyncio.run(engine.step()) is None
    assert engine.current_snapshot() is before
    assert engine.failed_ticks == 1
    assert engine.performance()["failedTicks"] == 1


def test_failed_tick_rolls_back_task_transitions():
    events = []

    async def publish(event):
        events.append(event)

    clock = FakeClock(NIGHT)
    engine = make_engine(clock, publish=publish)
    start = NIGHT + timedelta(minutes=5)
    task = asyncio.run(engine.schedule_maintenance("API_1", MaintenanceType.ROUTINE, start=start))

    def boom(*args, **kwargs):
        raise RuntimeError("sensor model exploded")

    engine.telemetry.generate = boom
    clock.now = start
    assert asyncio.run(engine.step()) is None
    assert task.status is TaskStatus.SCHEDULED
    assert task.started_at is None

    del engine.telemetry.generate
    clock.now = start + timedelta(seconds=5)
    asyncio.run(engine.step())
    updates = [e for e in events if e["type"] == "maintenance" and e["data"]["type"] == "update"]
    assert len(updates) == 1
    assert updates[0]["data"]["task"]["status"] == "in-progress"
    assert task.started_at == start + timedelta(seconds=5)
    assert engine.current_snapshot().tasks[0]["status"] == "in-progress"


def test_step_publishes_snapshot_and_statistics():
    events = []

    async def publish(event):
        events.append(event)

    clock = FakeClock(NIGHT)
    engine = make_engine(clock, publish=publish)
    start = NIGHT + timedelta(minutes=5)
    asyncio.run(engine.schedule_maintenance("API_3", MaintenanceType.ROUTINE, start=start))
    assert events[-1]["type"] == "maintenance"
    assert events[-1]["data"]["type"] == "new"

    clock.now = start
    asyncio.run(engine.step())
    types = [event["type"] for event in events[1:]]
    assert types == ["maintenance", "snapshot", "statistics"]
    assert events[1]["data"]["task"]["status"] == "in-progress"
    assert "traffic" in events[-1]["data"]
    assert events[2]["data"]["tasks"][0]["status"] == "in-progress"


def test_publish_failure_does_not_break_tick():
    async def publish(event):
        raise ConnectionError("subscriber gone")

    engine = make_engine(FakeClock(NIGHT), publish=publish)
    assert asyncio.run(engine.step()) is not None
    assert engine.ticks == 1


def test_scheduling_against_alert_marks_it_programmed():
    clock = FakeClock(NIGHT)
    engine = make_engine(clock, faults=FaultRates(power_cut=1.0))
    engine.tick()
    assert len(engine.alerts) == 4
    alert = engine.alerts[0]
    assert alert.type is AlertType.POWER_LOSS

    task = asyncio.run(engine.schedule_maintenance(alert.node_id, MaintenanceType.EMERGENCY, alert_id=alert.id))
    assert task.alert_id == alert.id
    assert task.scheduled_start == NIGHT
    programmed = {a["id"]: a["isProgrammed"] for a in engine.current_snapshot().alerts}
    assert programmed[alert.id] is True
    assert sum(programmed.values()) == 1

    with pytest.raises(AlertAlreadyProgrammed):
        asyncio.run(engine.schedule_maintenance("API_2", MaintenanceType.ROUTINE, alert_id=alert.id))
    with pytest.raises(AlertNotFound):
        asyncio.run(engine.schedule_maintenance("API_2", MaintenanceType.ROUTINE, alert_id="missing"))
    with pytest.raises(NodeNotFound):
        asyncio.run(engine.schedule_maintenance("API_99", MaintenanceType.ROUTINE))


def test_offline_fleet_alerts_once():
    engine = make_engine(FakeClock(NIGHT), faults=FaultRates(power_cut=1.0))
    engine.tick(NIGHT)
    engine.tick(NIGHT + timedelta(seconds=5))
    assert len(engine.alerts) == 4
    assert engine.statistics()["health"]["tooManyOffline"] is True


def test_add_node_is_visible_immediately():
    engine = make_engine(FakeClock(NIGHT))
    engine.tick()
    node = asyncio.run(engine.add_node("Main & 5th", Location(45.55, -73.55)))
    assert node.id == "API_5"
    assert node.measurement is not None
    ids = [n["id"] for n in engine.current_snapshot().nodes]
    assert ids[-1] == "API_5"


def test_run_loop_ticks_until_stopped():
    config = SimulationConfig(tick_interval=0.01, node_count=2, seed=3)
    engine = SimulationEngine(config)

    async def scenario():
        await engine.start()
        await asyncio.sleep(0.1)
        await engine.stop()

    asyncio.run(scenario())
    assert engine.ticks >= 1
    assert engine.current_snapshot().tick == engine.ticks
