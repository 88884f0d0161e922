"""Constraint-aware maintenance placement and task lifecycle."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

import numpy as np

from ..errors import (
    ConcurrencyExceeded,
    ConstraintError,
    SchedulingExhausted,
    SpacingViolated,
    StaffingExceeded,
)
from ..utils.logging import logger
from .profiles import (
    DEFAULT_PROFILES,
    MaintenanceConstraints,
    MaintenanceProfile,
    MaintenanceTask,
    MaintenanceType,
    TaskStatus,
    ValidationResult,
)


LifecycleState = Tuple[TaskStatus, Optional[datetime], Optional[datetime]]


class MaintenanceScheduler:
    """Owns the task registry and enforces the global constraint set.

    Concurrency, per-node spacing and staffing are checked against every
    stored task at placement time. Lifecycle changes happen only through
    :meth:`advance`, which the tick calls once per interval.
    """

    def __init__(
        self,
        rng: np.random.Generator,
        constraints: MaintenanceConstraints | None = None,
        profiles: Mapping[MaintenanceType, MaintenanceProfile] | None = None,
    ):
        self.rng = rng
        self.constraints = constraints or MaintenanceConstraints()
        self.profiles = dict(profiles or DEFAULT_PROFILES)
        self.tasks: List[MaintenanceTask] = []
        self._ids = itertools.count(1)

    def profile(self, kind: MaintenanceType) -> MaintenanceProfile:
        return self.profiles[MaintenanceType(kind)]

    # ------------------------------------------------------------------ placement
    def validate(self, node_id: str, kind: MaintenanceType, proposed_start: datetime) -> ValidationResult:
        """Check a candidate window; raises a :class:`ConstraintError` subclass."""

        profile = self.profile(kind)
        limits = self.constraints
        proposed_end = proposed_start + profile.duration

        overlapping = [t for t in self.tasks if t.open and t.overlaps(proposed_start, proposed_end)]
        if len(overlapping) >= limits.max_concurrent:
            raise ConcurrencyExceeded(len(overlapping), limits.max_concurrent)

        for task in self.tasks:
            if task.node_id == node_id and abs(task.scheduled_start - proposed_start) < limits.min_interval:
                raise SpacingViolated(node_id, task.id)

        staff_needed = sum(t.staff_required for t in overlapping) + profile.staff_required
        if staff_needed > limits.staff_available:
            raise StaffingExceeded(staff_needed, limits.staff_available)

        impact = sum(t.impact.score for t in overlapping) + profile.impact.score
        return ValidationResult(
            preferred_window=limits.preferred_hours.contains(proposed_start.hour),
            concurrent_tasks=len(overlapping),
            staff_needed=staff_needed,
            impact_score=impact,
        )

    def place(
        self,
        node_id: str,
        kind: MaintenanceType,
        start: datetime,
        alert_id: Optional[str] = None,
    ) -> MaintenanceTask:
        """Validate and commit a task at an operator-chosen start."""

        validation = self.validate(node_id, kind, start)
        return self._commit(node_id, MaintenanceType(kind), start, validation, alert_id)

    def schedule(
        self,
        node_id: str,
        kind: MaintenanceType,
        now: datetime,
        alert_id: Optional[str] = None,
    ) -> MaintenanceTask:
        """Find a start for a new task, preferring the off-peak window.

        Raises:
            SchedulingExhausted: no valid window within ``max_attempts`` tries.
        """

        kind = MaintenanceType(kind)
        profile = self.profile(kind)
        limits = self.constraints
        candidate = now + profile.interval * float(self.rng.random())
        last_error: Optional[ConstraintError] = None

        for attempt in range(limits.max_attempts):
            final = attempt == limits.max_attempts - 1
            try:
                validation = self.validate(node_id, kind, candidate)
            except ConstraintError as exc:
                logger.debug("Attempt {} for {} at {} rejected: {}", attempt + 1, node_id, candidate, exc)
                last_error = exc
                candidate = candidate + timedelta(days=1)
                continue
            if validation.preferred_window or final:
                return self._commit(node_id, kind, candidate, validation, alert_id)
            candidate = (candidate + timedelta(days=1)).replace(hour=limits.preferred_hours.start)

        logger.warning("Could not place {} maintenance for {}: {}", kind.value, node_id, last_error)
        raise SchedulingExhausted(node_id, limits.max_attempts, last_error) from last_error

    def _commit(
        self,
        node_id: str,
        kind: MaintenanceType,
        start: datetime,
        validation: ValidationResult,
        alert_id: Optional[str],
    ) -> MaintenanceTask:
        profile = self.profile(kind)
        task = MaintenanceTask(
            id=f"MAINT_{next(self._ids)}_{node_id}",
            node_id=node_id,
            type=kind,
            scheduled_start=start,
            duration=profile.duration,
            impact=profile.impact,
            staff_required=profile.staff_required,
            checklist=profile.checklist,
            validation=validation,
            alert_id=alert_id,
        )
        self.tasks.append(task)
        logger.info(
            "Scheduled {} maintenance {} for {} at {} (preferred={})",
            kind.value, task.id, node_id, start.isoformat(), validation.preferred_window,
        )
        return task

    # ------------------------------------------------------------------ lifecycle
    def advance(self, now: datetime) -> List[MaintenanceTask]:
        """Move tasks along scheduled -> in-progress -> completed.

        Returns the tasks whose status changed during this call.
        """

        changed: List[MaintenanceTask] = []
        for task in self.tasks:
            before = task.status
            if task.status is TaskStatus.SCHEDULED and now >= task.scheduled_start:
                task.status = TaskStatus.IN_PROGRESS
                task.started_at = now
            if task.status is TaskStatus.IN_PROGRESS and now >= task.end:
                task.status = TaskStatus.COMPLETED
                task.completed_at = now
            if task.status is not before:
                logger.info("Maintenance {} on {}: {} -> {}", task.id, task.node_id, before.value, task.status.value)
                changed.append(task)
        return changed

    def lifecycle_state(self) -> Dict[str, LifecycleState]:
        """Status and timestamps of every open task, for :meth:`restore_lifecycle`."""

        return {t.id: (t.status, t.started_at, t.completed_at) for t in self.tasks if t.open}

    def restore_lifecycle(self, state: Mapping[str, LifecycleState]) -> None:
        """Undo :meth:`advance` calls made since ``state`` was taken."""

        for task in self.tasks:
            if task.id in state:
                task.status, task.started_at, task.completed_at = state[task.id]

    def nodes_under_maintenance(self) -> Set[str]:
        return {t.node_id for t in self.tasks if t.status is TaskStatus.IN_PROGRESS}

    def under_maintenance(self, node_id: str) -> bool:
        return node_id in self.nodes_under_maintenance()

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in TaskStatus}
        for task in self.tasks:
            counts[task.status.value] += 1
        return counts

    def efficiency(self) -> float:
        return maintenance_efficiency(self.tasks)


def maintenance_efficiency(tasks: Iterable[MaintenanceTask]) -> float:
    """Mean planned/actual duration ratio over completed tasks, capped at 1."""

    ratios = []
    for task in tasks:
        if task.status is not TaskStatus.COMPLETED:
            continue
        actual_end = task.completed_at or task.end
        elapsed = (actual_end - task.scheduled_start).total_seconds()
        planned = task.duration.total_seconds()
        ratios.append(1.0 if elapsed <= 0 else min(1.0, planned / elapsed))
    if not ratios:
        return 1.0
    return float(np.mean(ratios))


__all__ = ["MaintenanceScheduler", "maintenance_efficiency"]
