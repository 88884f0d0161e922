"""Node status and alert derivation from telemetry."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .patterns import HEADS
from .telemetry import Measurement, SignalColor


class NodeStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    ERROR = "error"
    OFFLINE = "offline"


class AlertType(str, Enum):
    POWER_LOSS = "power_loss"
    FAULT = "fault"
    INTERMITTENT_FAULT = "intermittent_fault"


ALERT_FOR_STATUS: Dict[NodeStatus, AlertType] = {
    NodeStatus.OFFLINE: AlertType.POWER_LOSS,
    NodeStatus.ERROR: AlertType.FAULT,
    NodeStatus.WARNING: AlertType.INTERMITTENT_FAULT,
}

DEFAULT_RETENTION = timedelta(hours=1)


@dataclass(frozen=True)
class Alert:
    id: str
    type: AlertType
    node_id: str
    timestamp: datetime
    occurrences: int
    head: Optional[str] = None
    color: Optional[SignalColor] = None
    programmed: bool = False

    def mark_programmed(self) -> "Alert":
        return replace(self, programmed=True)

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.type.value,
            "nodeId": self.node_id,
            "timestamp": self.timestamp.isoformat(),
            "occurrences": self.occurrences,
            "head": self.head,
            "color": self.color.value if self.color is not None else None,
            "isProgrammed": self.programmed,
        }


def derive_status(measurement: Measurement) -> NodeStatus:
    """Status implied by a measurement; see DESIGN.md for the severity rule."""

    if measurement.device.power_cut:
        return NodeStatus.OFFLINE
    if any(not head.healthy for head in measurement.heads):
        return NodeStatus.ERROR
    if any(head.consecutive_faults > 0 for head in measurement.heads):
        return NodeStatus.WARNING
    return NodeStatus.ACTIVE


class AlertDeriver:
    """Turn status transitions into alerts and retire old ones."""

    def __init__(self, rng: np.random.Generator, retention: timedelta = DEFAULT_RETENTION):
        self.rng = rng
        self.retention = retention
        self._ids = itertools.count(1)

    def derive(
        self,
        node_id: str,
        previous: NodeStatus,
        measurement: Measurement,
    ) -> Tuple[NodeStatus, Optional[Alert]]:
        status = derive_status(measurement)
        if status is NodeStatus.ACTIVE or status is previous:
            return status, None
        return status, self._make_alert(node_id, status, measurement.timestamp)

    def expire(self, alerts: Iterable[Alert], now: datetime) -> List[Alert]:
        horizon = now - self.retention
        return [alert for alert in alerts if alert.timestamp > horizon]

    def _make_alert(self, node_id: str, status: NodeStatus, now: datetime) -> Alert:
        rng = self.rng
        colors = list(SignalColor)
        return Alert(
            id=f"ALERT_{next(self._ids)}_{node_id}",
            type=ALERT_FOR_STATUS[status],
            node_id=node_id,
            timestamp=now,
            occurrences=int(rng.integers(1, 11)),
            head=HEADS[int(rng.integers(0, len(HEADS)))],
            color=colors[int(rng.integers(0, len(colors)))],
        )


__all__ = [
    "NodeStatus",
    "AlertType",
    "Alert",
    "ALERT_FOR_STATUS",
    "DEFAULT_RETENTION",
    "derive_status",
    "AlertDeriver",
]
