"""Exception hierarchy for the fleet simulator."""

from __future__ import annotations

from typing import Optional


class FleetError(Exception):
    """Base exception for simulator errors."""


class NodeNotFound(FleetError):
    """Raised when a node id is not part of the fleet."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found.")


class AlertNotFound(FleetError):
    """Raised when an alert id is not in the live alert set."""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert '{alert_id}' not found.")


class AlertAlreadyProgrammed(FleetError):
    """Raised when maintenance is requested twice against the same alert."""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert '{alert_id}' already has maintenance programmed.")


class SchedulingError(FleetError):
    """Base exception for maintenance placement failures."""


class ConstraintError(SchedulingError):
    """A proposed task window breaks one of the global constraints.

    Always recoverable: the caller may retry with a different start time.
    """

    kind = "constraint"


class ConcurrencyExceeded(ConstraintError):
    kind = "concurrency"

    def __init__(self, concurrent: int, limit: int):
        self.concurrent = concurrent
        self.limit = limit
        super().__init__(f"Maximum concurrent maintenance limit ({limit}) exceeded ({concurrent} overlapping tasks)")


class SpacingViolated(ConstraintError):
    kind = "spacing"

    def __init__(self, node_id: str, conflicting_task: str):
        self.node_id = node_id
        self.conflicting_task = conflicting_task
        super().__init__(
            f"Minimum interval between maintenance tasks not met for node {node_id} (conflicts with {conflicting_task})"
        )


class StaffingExceeded(ConstraintError):
    kind = "staffing"

    def __init__(self, needed: int, available: int):
        self.needed = needed
        self.available = available
        super().__init__(f"Insufficient staff available (need {needed}, have {available})")


class SchedulingExhausted(SchedulingError):
    """Raised when no valid window was found within the allowed attempts."""

    def __init__(self, node_id: str, attempts: int, last_error: Optional[ConstraintError] = None):
        self.node_id = node_id
        self.attempts = attempts
        self.last_error = last_error
        reason = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Failed to schedule maintenance for node {node_id} after {attempts} attempts{reason}")


__all__ = [
    "FleetError",
    "NodeNotFound",
    "AlertNotFound",
    "AlertAlreadyProgrammed",
    "SchedulingError",
    "ConstraintError",
    "ConcurrencyExceeded",
    "SpacingViolated",
    "StaffingExceeded",
    "SchedulingExhausted",
]
