"""Intersection node registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np

from .alerts import Alert, NodeStatus
from .telemetry import Measurement

BASE_LOCATION = (45.5, -73.6)


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def as_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass
class Node:
    """A simulated traffic-signal controller."""

    id: str
    name: str
    location: Location
    status: NodeStatus = NodeStatus.ACTIVE
    last_update: Optional[datetime] = None
    measurement: Optional[Measurement] = None
    alerts: List[Alert] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location.as_dict(),
            "status": self.status.value,
            "lastUpdate": self.last_update.isoformat() if self.last_update else None,
            "measurement": self.measurement.as_dict() if self.measurement else None,
            "alerts": [a.as_dict() for a in self.alerts],
        }


class Fleet:
    """Ordered collection of nodes keyed by id."""

    def __init__(self):
        self._nodes: Dict[str, Node] = {}

    def __iter__(self):
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def next_id(self) -> str:
        return f"API_{len(self._nodes) + 1}"

    def add(self, name: str, location: Location, node_id: Optional[str] = None) -> Node:
        node_id = node_id or self.next_id()
        if node_id in self._nodes:
            raise ValueError(f"duplicate node id: {node_id}")
        node = Node(id=node_id, name=name, location=location)
        self._nodes[node_id] = node
        return node

    def statuses(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in NodeStatus}
        for node in self._nodes.values():
            counts[node.status.value] += 1
        return counts


def random_location(rng: np.random.Generator) -> Location:
    lat, lon = BASE_LOCATION
    return Location(lat + float(rng.uniform(0.0, 0.1)), lon + float(rng.uniform(0.0, 0.1)))


def create_fleet(count: int, rng: np.random.Generator) -> Fleet:
    fleet = Fleet()
    for i in range(count):
        fleet.add(f"Intersection {i + 1}", random_location(rng))
    return fleet


__all__ = ["Location", "Node", "Fleet", "random_location", "create_fleet"]
