"""Rolling fleet metrics and pattern-transition forecasts."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Deque, Dict, Iterable, List, Mapping, Sequence

import numpy as np

from .alerts import Alert, NodeStatus
from .patterns import TrafficPattern, next_transition, pattern_for
from .telemetry import Measurement

SECONDS_PER_DAY = 24 * 60 * 60


def buffer_capacity(tick_interval: float) -> int:
    """Number of samples covering 24 hours at one sample per tick."""

    return max(1, int(SECONDS_PER_DAY / tick_interval))


@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: datetime
    value: float

    def as_dict(self) -> Dict[str, object]:
        return {"timestamp": self.timestamp.isoformat(), "value": self.value}


class RollingSeries:
    """Fixed-capacity time series; the oldest point is evicted on overflow."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.points: Deque[TimeSeriesPoint] = deque(maxlen=capacity)

    def append(self, timestamp: datetime, value: float) -> None:
        self.points.append(TimeSeriesPoint(timestamp, float(value)))

    @property
    def latest(self) -> float:
        return self.points[-1].value if self.points else 0.0

    def __len__(self) -> int:
        return len(self.points)

    def as_list(self) -> List[Dict[str, object]]:
        return [p.as_dict() for p in self.points]


@dataclass(frozen=True)
class TrafficSample:
    """Fleet-wide traffic figures for one tick."""

    congestion_level: float
    average_volume: float
    emergency_overrides: int
    adaptive_activations: int


def traffic_sample(pattern: TrafficPattern, measurements: Sequence[Measurement]) -> TrafficSample:
    """Reduce one tick of measurements to fleet figures.

    Congestion and volume are averaged per signal head; emergencies are
    counted per node; a head counts as an adaptive activation when its
    adapted green time differs from the pattern's base value.
    """

    heads = [h for m in measurements for h in m.heads]
    if not heads:
        return TrafficSample(0.0, 0.0, 0, 0)
    congestion = np.array([h.statistics.congestion for h in heads], dtype=np.float32)
    volume = np.array([h.statistics.vehicle_volume for h in heads], dtype=np.float64)
    adaptive = sum(1 for h in heads if h.statistics.adapted_green_time != pattern.base_green(h.head))
    return TrafficSample(
        congestion_level=float(congestion.mean()),
        average_volume=float(volume.mean()),
        emergency_overrides=sum(1 for m in measurements if m.emergency_override),
        adaptive_activations=adaptive,
    )


@dataclass
class FleetHealth:
    total: int = 0
    counts: Dict[str, int] = field(default_factory=dict)
    offline_threshold: float = 0.3
    error_threshold: float = 0.2

    @property
    def too_many_offline(self) -> bool:
        return self.total > 0 and self.counts.get(NodeStatus.OFFLINE.value, 0) > self.total * self.offline_threshold

    @property
    def too_many_errors(self) -> bool:
        return self.total > 0 and self.counts.get(NodeStatus.ERROR.value, 0) > self.total * self.error_threshold

    def as_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            **self.counts,
            "tooManyOffline": self.too_many_offline,
            "tooManyErrors": self.too_many_errors,
        }


def fleet_health(statuses: Mapping[str, int]) -> FleetHealth:
    return FleetHealth(total=sum(statuses.values()), counts=dict(statuses))


def predict(now: datetime, hours: int = 24) -> List[Dict[str, object]]:
    """Expected pattern transitions for each of the next ``hours`` hours."""

    predictions = []
    for i in range(1, hours + 1):
        at = now + timedelta(hours=i)
        pattern, period = pattern_for(at)
        upcoming = next_transition(at)
        predictions.append(
            {
                "from": period.value,
                "to": upcoming.period.value,
                "time": upcoming.time.isoformat(),
                "congestionProbability": pattern.probability.congestion,
            }
        )
    return predictions


class TimeSeriesAggregator:
    """Maintain the rolling traffic, maintenance and alert series."""

    TRAFFIC = ("congestionLevels", "vehicleVolumes", "emergencyEvents", "adaptiveTimingChanges")
    MAINTENANCE = ("scheduledTasks", "completedTasks", "efficiency")

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.traffic: Dict[str, RollingSeries] = {name: RollingSeries(capacity) for name in self.TRAFFIC}
        self.maintenance: Dict[str, RollingSeries] = {name: RollingSeries(capacity) for name in self.MAINTENANCE}
        self.alerts_by_type: Dict[str, RollingSeries] = {}
        self.alerts_by_node: Dict[str, RollingSeries] = {}
        self.last_sample = TrafficSample(0.0, 0.0, 0, 0)
        self.samples = 0

    def update(
        self,
        now: datetime,
        pattern: TrafficPattern,
        measurements: Sequence[Measurement],
        task_counts: Mapping[str, int],
        efficiency: float,
        alerts: Iterable[Alert],
    ) -> TrafficSample:
        sample = traffic_sample(pattern, measurements)
        self.traffic["congestionLevels"].append(now, sample.congestion_level)
        self.traffic["vehicleVolumes"].append(now, sample.average_volume)
        self.traffic["emergencyEvents"].append(now, sample.emergency_overrides)
        self.traffic["adaptiveTimingChanges"].append(now, sample.adaptive_activations)

        self.maintenance["scheduledTasks"].append(now, task_counts.get("scheduled", 0))
        self.maintenance["completedTasks"].append(now, task_counts.get("completed", 0))
        self.maintenance["efficiency"].append(now, efficiency)

        by_type, by_node = alert_counts(alerts)
        for key, count in by_type.items():
            self.alerts_by_type.setdefault(key, RollingSeries(self.capacity)).append(now, count)
        for key, count in by_node.items():
            self.alerts_by_node.setdefault(key, RollingSeries(self.capacity)).append(now, count)

        self.last_sample = sample
        self.samples += 1
        return sample

    def traffic_dict(self) -> Dict[str, List[Dict[str, object]]]:
        return {name: series.as_list() for name, series in self.traffic.items()}

    def maintenance_dict(self) -> Dict[str, List[Dict[str, object]]]:
        return {name: series.as_list() for name, series in self.maintenance.items()}

    def alerts_dict(self) -> Dict[str, Dict[str, List[Dict[str, object]]]]:
        return {
            "byType": {k: s.as_list() for k, s in self.alerts_by_type.items()},
            "byNode": {k: s.as_list() for k, s in self.alerts_by_node.items()},
        }

    def as_dict(self) -> Dict[str, object]:
        return {
            "traffic": self.traffic_dict(),
            "maintenance": self.maintenance_dict(),
            "alerts": self.alerts_dict(),
        }

    def summary(
        self,
        now: datetime,
        statuses: Mapping[str, int],
        alerts: Sequence[Alert],
        task_counts: Mapping[str, int],
        efficiency: float,
    ) -> Dict[str, object]:
        """Point-in-time statistics view of the latest tick."""

        _, period = pattern_for(now)
        by_type, by_node = alert_counts(alerts)
        sample = self.last_sample
        return {
            "nodes": {
                "total": sum(statuses.values()),
                "byStatus": dict(statuses),
                "active": statuses.get(NodeStatus.ACTIVE.value, 0),
            },
            "traffic": {
                "currentPattern": period.value,
                "congestionLevel": sample.congestion_level,
                "averageVehicleVolume": sample.average_volume,
                "emergencyOverrides": sample.emergency_overrides,
                "adaptiveTimingActivations": sample.adaptive_activations,
                "nextTransition": next_transition(now).as_dict(),
            },
            "alerts": {"total": len(alerts), "byType": by_type, "byNode": by_node},
            "maintenance": {
                "scheduled": task_counts.get("scheduled", 0),
                "inProgress": task_counts.get("in-progress", 0),
                "completed": task_counts.get("completed", 0),
                "efficiency": efficiency,
            },
            "timestamp": now.isoformat(),
        }


def alert_counts(alerts: Iterable[Alert]) -> tuple[Dict[str, int], Dict[str, int]]:
    by_type: Dict[str, int] = {}
    by_node: Dict[str, int] = {}
    for alert in alerts:
        by_type[alert.type.value] = by_type.get(alert.type.value, 0) + 1
        by_node[alert.node_id] = by_node.get(alert.node_id, 0) + 1
    return by_type, by_node


__all__ = [
    "buffer_capacity",
    "TimeSeriesPoint",
    "RollingSeries",
    "TrafficSample",
    "traffic_sample",
    "FleetHealth",
    "fleet_health",
    "predict",
    "TimeSeriesAggregator",
    "alert_counts",
]
