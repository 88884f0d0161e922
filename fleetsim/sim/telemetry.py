"""Synthetic per-node telemetry driven by the active traffic pattern."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Tuple

import numpy as np

from .patterns import HEADS, TrafficPattern


class SignalColor(str, Enum):
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


class OperatingMode(str, Enum):
    NORMAL = "normal"
    MAINTENANCE = "maintenance"


class DoorState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class PowerState(str, Enum):
    NORMAL = "normal"
    CUT = "cut"


@dataclass(frozen=True)
class FaultRates:
    """Fixed device fault probabilities, independent of the pattern."""

    door_open: float = 0.1
    power_cut: float = 0.05
    head_failure: float = 0.05
    intermittent_fault: float = 0.1
    max_consecutive_faults: int = 2


@dataclass(frozen=True)
class DeviceHealth:
    door: DoorState
    power: PowerState
    battery_level: float
    temperature: float

    @property
    def power_cut(self) -> bool:
        return self.power is PowerState.CUT

    def as_dict(self) -> Dict[str, object]:
        return {
            "door": self.door.value,
            "power": self.power.value,
            "batteryLevel": self.battery_level,
            "temperature": self.temperature,
        }


@dataclass(frozen=True)
class HeadStatistics:
    congestion: bool
    vehicle_volume: float
    emergency_override: bool
    adapted_green_time: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "congestion": self.congestion,
            "vehicleVolume": self.vehicle_volume,
            "emergencyOverride": self.emergency_override,
            "adaptedGreenTime": self.adapted_green_time,
        }


@dataclass(frozen=True)
class HeadReading:
    head: str
    color: SignalColor
    voltage: float
    current: float
    healthy: bool
    consecutive_faults: int
    statistics: HeadStatistics

    def as_dict(self) -> Dict[str, object]:
        return {
            "head": self.head,
            "color": self.color.value,
            "voltage": self.voltage,
            "current": self.current,
            "healthy": self.healthy,
            "consecutiveFaults": self.consecutive_faults,
            "statistics": self.statistics.as_dict(),
        }


@dataclass(frozen=True)
class Measurement:
    """One telemetry snapshot for a node; replaced wholesale every tick."""

    timestamp: datetime
    node_id: str
    cycle_index: int
    cycle_position: int
    mode: OperatingMode
    device: DeviceHealth
    heads: Tuple[HeadReading, ...]

    @property
    def congested(self) -> bool:
        return any(h.statistics.congestion for h in self.heads)

    @property
    def emergency_override(self) -> bool:
        return any(h.statistics.emergency_override for h in self.heads)

    def as_dict(self) -> Dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "nodeId": self.node_id,
            "cycleIndex": self.cycle_index,
            "cyclePosition": self.cycle_position,
            "mode": self.mode.value,
            "device": self.device.as_dict(),
            "heads": [h.as_dict() for h in self.heads],
        }


def adapt_green_time(pattern: TrafficPattern, head: str, congested: bool, volume: float) -> int:
    """Green time for ``head`` after congestion-adaptive extension."""

    green = pattern.base_green(head)
    adaptive = pattern.adaptive
    if congested and volume > adaptive.congestion_threshold:
        extension = min(
            adaptive.max_green_extension,
            math.floor((volume - adaptive.congestion_threshold) * 50),
        )
        green = max(adaptive.min_green_time, green + extension)
    return green


class TelemetryGenerator:
    """Sample plausible measurements for a node under a traffic pattern."""

    def __init__(self, rng: np.random.Generator, faults: FaultRates | None = None):
        self.rng = rng
        self.faults = faults or FaultRates()

    def generate(
        self,
        node_id: str,
        pattern: TrafficPattern,
        under_maintenance: bool,
        now: datetime,
    ) -> Measurement:
        rng = self.rng
        cycle_index = int(rng.integers(1, 5))
        position = int(rng.integers(0, pattern.cycle_length))
        device = self._device_health()

        congested = bool(rng.random() < pattern.probability.congestion)
        volume = pattern.probability.vehicle_volume * float(rng.uniform(0.8, 1.2))
        emergency = bool(rng.random() < pattern.probability.emergency)

        heads = tuple(
            self._head_reading(pattern, head, position, congested, volume, emergency, under_maintenance)
            for head in HEADS
        )
        return Measurement(
            timestamp=now,
            node_id=node_id,
            cycle_index=cycle_index,
            cycle_position=position,
            mode=OperatingMode.MAINTENANCE if under_maintenance else OperatingMode.NORMAL,
            device=device,
            heads=heads,
        )

    def _device_health(self) -> DeviceHealth:
        rng = self.rng
        return DeviceHealth(
            door=DoorState.OPEN if rng.random() < self.faults.door_open else DoorState.CLOSED,
            power=PowerState.CUT if rng.random() < self.faults.power_cut else PowerState.NORMAL,
            battery_level=float(rng.uniform(85.0, 100.0)),
            temperature=float(rng.uniform(25.0, 35.0)),
        )

    def _head_reading(
        self,
        pattern: TrafficPattern,
        head: str,
        position: int,
        congested: bool,
        volume: float,
        emergency: bool,
        under_maintenance: bool,
    ) -> HeadReading:
        rng = self.rng
        green_time = adapt_green_time(pattern, head, congested, volume)
        if emergency:
            # priority clearing: only the main approach gets green
            is_green = head == HEADS[0]
        else:
            is_green = (position % pattern.cycle_length) < green_time

        healthy = bool(rng.random() >= self.faults.head_failure)
        faults = 0
        if rng.random() < self.faults.intermittent_fault:
            faults = int(rng.integers(1, self.faults.max_consecutive_faults + 1))
        if under_maintenance:
            healthy = False

        current = float(rng.uniform(1.0, 1.5)) if is_green else float(rng.uniform(0.5, 0.8))
        return HeadReading(
            head=head,
            color=SignalColor.GREEN if is_green else SignalColor.RED,
            voltage=float(rng.uniform(220.0, 230.0)),
            current=current,
            healthy=healthy,
            consecutive_faults=faults,
            statistics=HeadStatistics(
                congestion=congested,
                vehicle_volume=volume,
                emergency_override=emergency,
                adapted_green_time=green_time,
            ),
        )


__all__ = [
    "SignalColor",
    "OperatingMode",
    "DoorState",
    "PowerState",
    "FaultRates",
    "DeviceHealth",
    "HeadStatistics",
    "HeadReading",
    "Measurement",
    "adapt_green_time",
    "TelemetryGenerator",
]
