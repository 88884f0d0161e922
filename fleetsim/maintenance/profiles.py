"""Maintenance task types, constraints and task records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


class MaintenanceType(str, Enum):
    ROUTINE = "routine"
    PREVENTIVE = "preventive"
    MAJOR = "major"
    EMERGENCY = "emergency"


class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def score(self) -> int:
        return _IMPACT_SCORES[self]


_IMPACT_SCORES = {Impact.LOW: 1, Impact.MEDIUM: 2, Impact.HIGH: 3, Impact.CRITICAL: 4}


class TaskStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class MaintenanceProfile:
    interval: timedelta
    duration: timedelta
    impact: Impact
    priority: int
    staff_required: int
    checklist: Tuple[str, ...]


DEFAULT_PROFILES: Mapping[MaintenanceType, MaintenanceProfile] = MappingProxyType(
    {
        MaintenanceType.ROUTINE: MaintenanceProfile(
            interval=timedelta(days=7),
            duration=timedelta(hours=2),
            impact=Impact.LOW,
            priority=1,
            staff_required=1,
            checklist=("inspection", "cleaning", "basic-testing"),
        ),
        MaintenanceType.PREVENTIVE: MaintenanceProfile(
            interval=timedelta(days=14),
            duration=timedelta(hours=4),
            impact=Impact.MEDIUM,
            priority=2,
            staff_required=2,
            checklist=("calibration", "component-check", "software-update"),
        ),
        MaintenanceType.MAJOR: MaintenanceProfile(
            interval=timedelta(days=30),
            duration=timedelta(hours=8),
            impact=Impact.HIGH,
            priority=3,
            staff_required=3,
            checklist=("hardware-replacement", "full-testing", "certification"),
        ),
        # on-demand: zero interval keeps the first candidate at "now"
        MaintenanceType.EMERGENCY: MaintenanceProfile(
            interval=timedelta(0),
            duration=timedelta(hours=4),
            impact=Impact.CRITICAL,
            priority=4,
            staff_required=2,
            checklist=("fault-diagnosis", "emergency-repair"),
        ),
    }
)


@dataclass(frozen=True)
class PreferredHours:
    """Off-peak window in 24h clock hours; ``start > end`` wraps midnight."""

    start: int = 22
    end: int = 5

    def contains(self, hour: int) -> bool:
        if self.start <= self.end:
            return self.start <= hour < self.end
        return hour >= self.start or hour < self.end


@dataclass(frozen=True)
class MaintenanceConstraints:
    max_concurrent: int = 2
    min_interval: timedelta = timedelta(hours=12)
    max_impact_score: int = 5
    staff_available: int = 4
    preferred_hours: PreferredHours = field(default_factory=PreferredHours)
    max_attempts: int = 5


@dataclass(frozen=True)
class ValidationResult:
    preferred_window: bool
    concurrent_tasks: int
    staff_needed: int
    impact_score: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "isPreferredHours": self.preferred_window,
            "concurrentTasks": self.concurrent_tasks,
            "staffNeeded": self.staff_needed,
            "impactScore": self.impact_score,
        }


@dataclass
class MaintenanceTask:
    id: str
    node_id: str
    type: MaintenanceType
    scheduled_start: datetime
    duration: timedelta
    impact: Impact
    staff_required: int
    checklist: Tuple[str, ...]
    validation: ValidationResult
    status: TaskStatus = TaskStatus.SCHEDULED
    alert_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def end(self) -> datetime:
        return self.scheduled_start + self.duration

    @property
    def open(self) -> bool:
        return self.status is not TaskStatus.COMPLETED

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Closed-interval overlap with ``[start, end]``."""

        return start <= self.end and self.scheduled_start <= end

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "nodeId": self.node_id,
            "type": self.type.value,
            "scheduledStart": self.scheduled_start.isoformat(),
            "duration": self.duration.total_seconds(),
            "status": self.status.value,
            "impact": self.impact.value,
            "staffRequired": self.staff_required,
            "tasks": list(self.checklist),
            "validation": self.validation.as_dict(),
            "alertId": self.alert_id,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


__all__ = [
    "MaintenanceType",
    "Impact",
    "TaskStatus",
    "MaintenanceProfile",
    "DEFAULT_PROFILES",
    "PreferredHours",
    "MaintenanceConstraints",
    "ValidationResult",
    "MaintenanceTask",
]
