"""Time-of-day traffic regimes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

HEADS: Tuple[str, ...] = ("main", "secondary")


class Period(str, Enum):
    MORNING_RUSH = "morningRush"
    DAYTIME = "daytime"
    EVENING_RUSH = "eveningRush"
    NIGHT = "night"


@dataclass(frozen=True)
class Probabilities:
    """Per-tick event probabilities."""

    pedestrian: float
    emergency: float
    vehicle_volume: float
    congestion: float


@dataclass(frozen=True)
class AdaptiveTiming:
    """Green extension knobs used when congestion is detected."""

    congestion_threshold: float
    max_green_extension: int
    min_green_time: int


@dataclass(frozen=True)
class TrafficPattern:
    period: Period
    cycle_length: int
    green_times: Mapping[str, int]
    probability: Probabilities
    adaptive: AdaptiveTiming

    def base_green(self, head: str) -> int:
        return self.green_times[head]

    def as_dict(self) -> Dict[str, object]:
        return {
            "period": self.period.value,
            "cycleLength": self.cycle_length,
            "greenTimes": dict(self.green_times),
            "probability": {
                "pedestrian": self.probability.pedestrian,
                "emergency": self.probability.emergency,
                "vehicleVolume": self.probability.vehicle_volume,
                "congestion": self.probability.congestion,
            },
            "adaptiveTiming": {
                "congestionThreshold": self.adaptive.congestion_threshold,
                "maxGreenExtension": self.adaptive.max_green_extension,
                "minGreenTime": self.adaptive.min_green_time,
            },
        }


def _pattern(
    period: Period,
    cycle: int,
    main: int,
    secondary: int,
    probability: Probabilities,
    adaptive: AdaptiveTiming,
) -> TrafficPattern:
    greens = MappingProxyType({"main": main, "secondary": secondary})
    return TrafficPattern(period, cycle, greens, probability, adaptive)


PATTERNS: Mapping[Period, TrafficPattern] = MappingProxyType(
    {
        Period.MORNING_RUSH: _pattern(
            Period.MORNING_RUSH, 120, 80, 40,
            Probabilities(pedestrian=0.8, emergency=0.2, vehicle_volume=0.9, congestion=0.8),
            AdaptiveTiming(congestion_threshold=0.7, max_green_extension=20, min_green_time=30),
        ),
        Period.DAYTIME: _pattern(
            Period.DAYTIME, 90, 50, 40,
            Probabilities(pedestrian=0.5, emergency=0.1, vehicle_volume=0.6, congestion=0.4),
            AdaptiveTiming(congestion_threshold=0.6, max_green_extension=15, min_green_time=25),
        ),
        Period.EVENING_RUSH: _pattern(
            Period.EVENING_RUSH, 120, 80, 40,
            Probabilities(pedestrian=0.8, emergency=0.2, vehicle_volume=0.95, congestion=0.85),
            AdaptiveTiming(congestion_threshold=0.75, max_green_extension=25, min_green_time=35),
        ),
        Period.NIGHT: _pattern(
            Period.NIGHT, 60, 35, 25,
            Probabilities(pedestrian=0.2, emergency=0.05, vehicle_volume=0.2, congestion=0.1),
            AdaptiveTiming(congestion_threshold=0.3, max_green_extension=10, min_green_time=20),
        ),
    }
)

# Half-open [start, end) hour ranges; everything else is night.
_DAY_SCHEDULE: Tuple[Tuple[int, int, Period], ...] = (
    (7, 9, Period.MORNING_RUSH),
    (9, 16, Period.DAYTIME),
    (16, 19, Period.EVENING_RUSH),
)
_BOUNDARIES: Tuple[Tuple[int, Period], ...] = (
    (7, Period.MORNING_RUSH),
    (9, Period.DAYTIME),
    (16, Period.EVENING_RUSH),
    (19, Period.NIGHT),
)


@dataclass(frozen=True)
class Transition:
    period: Period
    time: datetime

    def as_dict(self) -> Dict[str, str]:
        return {"pattern": self.period.value, "time": self.time.isoformat()}


def period_for_hour(hour: int) -> Period:
    if not 0 <= hour < 24:
        raise ValueError(f"hour out of range: {hour}")
    for start, end, period in _DAY_SCHEDULE:
        if start <= hour < end:
            return period
    return Period.NIGHT


def pattern_for(time: datetime) -> Tuple[TrafficPattern, Period]:
    """Return the pattern in force at ``time`` and its period label."""

    period = period_for_hour(time.hour)
    return PATTERNS[period], period


def next_transition(time: datetime) -> Transition:
    """Return the next pattern boundary strictly after ``time``."""

    top_of_hour = time.replace(minute=0, second=0, microsecond=0)
    for hour, period in _BOUNDARIES:
        if time.hour < hour:
            return Transition(period, top_of_hour.replace(hour=hour))
    first_hour, first_period = _BOUNDARIES[0]
    tomorrow = top_of_hour + timedelta(days=1)
    return Transition(first_period, tomorrow.replace(hour=first_hour))


__all__ = [
    "HEADS",
    "Period",
    "Probabilities",
    "AdaptiveTiming",
    "TrafficPattern",
    "PATTERNS",
    "Transition",
    "period_for_hour",
    "pattern_for",
    "next_transition",
]
