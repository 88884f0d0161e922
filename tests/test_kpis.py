from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from fleetsim.sim.kpis import (
    RollingSeries,
    TimeSeriesAggregator,
    buffer_capacity,
    fleet_health,
    predict,
    traffic_sample,
)
from fleetsim.sim.patterns import HEADS, PATTERNS, Period
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

NOW = datetime(2024, 5, 1, 8, 0)
MORNING = PATTERNS[Period.MORNING_RUSH]


def make_measurement(node_id: str, congested: bool, volume: float, emergency: bool, greens) -> Measurement:
    heads = tuple(
        HeadReading(head, SignalColor.GREEN, 225.0, 1.2, True, 0, HeadStatistics(congested, volume, emergency, green))
        for head, green in zip(HEADS, greens)
    )
    device = DeviceHealth(DoorState.CLOSED, PowerState.NORMAL, 90.0, 30.0)
    return Measurement(NOW, node_id, 1, 0, OperatingMode.NORMAL, device, heads)


def sample_measurements():
    return [
        make_measurement("API_1", True, 1.0, True, (95, 55)),
        make_measurement("API_2", False, 0.5, False, (80, 40)),
    ]


def test_buffer_capacity_covers_a_day():
    assert buffer_capacity(5.0) == 17280
    assert buffer_capacity(60.0) == 1440
    assert buffer_capacity(10 * 24 * 3600) == 1


def test_rolling_series_evicts_oldest():
    series = RollingSeries(3)
    for i in range(10):
        series.append(NOW + timedelta(seconds=i), i)
    assert len(series) == 3
    assert [p["value"] for p in series.as_list()] == [7.0, 8.0, 9.0]
    assert series.latest == 9.0


def test_traffic_sample_counts():
    sample = traffic_sample(MORNING, sample_measurements())
    assert sample.congestion_level == 0.5
    assert abs(sample.average_volume - 0.75) < 1e-9
    assert sample.emergency_overrides == 1
    assert sample.adaptive_activations == 2


def test_traffic_sample_empty_fleet():
    sample = traffic_sample(MORNING, [])
    assert sample.congestion_level == 0.0 and sample.adaptive_activations == 0


def test_aggregator_never_exceeds_capacity():
    aggregator = TimeSeriesAggregator(capacity=5)
    counts = {"scheduled": 1, "in-progress": 0, "completed": 2}
    for i in range(12):
        aggregator.update(NOW + timedelta(seconds=5 * i), MORNING, sample_measurements(), counts, 0.9, [])
    for series in list(aggregator.traffic.values()) + list(aggregator.maintenance.values()):
        assert len(series) <= 5
    assert aggregator.samples == 12
    assert aggregator.maintenance["completedTasks"].latest == 2.0
    assert aggregator.traffic["adaptiveTimingChanges"].latest == 2.0


def test_predict_is_deterministic_and_follows_patterns():
    now = datetime(2024, 5, 1, 6, 30)
    predictions = predict(now, 3)
    assert predictions == predict(now, 3)
    assert [p["from"] for p in predictions] == ["morningRush", "morningRush", "daytime"]
    assert [p["to"] for p in predictions] == ["daytime", "daytime", "eveningRush"]
    assert predictions[2]["time"] == datetime(2024, 5, 1, 16, 0).isoformat()
    assert predictions[0]["congestionProbability"] == 0.8
    assert predictions[2]["congestionProbability"] == 0.4


def test_fleet_health_flags():
    health = fleet_health({"active": 5, "warning": 0, "error": 1, "offline": 4})
    assert health.total == 10
    assert health.too_many_offline
    assert not health.too_many_errors


def test_summary_reports_latest_tick():
    aggregator = TimeSeriesAggregator(capacity=10)
    counts = {"scheduled": 1, "in-progress": 1, "completed": 0}
    aggregator.update(NOW, MORNING, sample_measurements(), counts, 1.0, [])
    summary = aggregator.summary(NOW, {"active": 2, "warning": 0, "error": 0, "offline": 0}, [], counts, 1.0)
    assert summary["nodes"]["total"] == 2
    assert summary["traffic"]["currentPattern"] == "morningRush"
    assert summary["traffic"]["adaptiveTimingActivations"] == 2
    assert summary["traffic"]["nextTransition"]["pattern"] == "daytime"
    assert summary["maintenance"]["inProgress"] == 1
    assert summary["alerts"]["total"] == 0
