"""Build immutable simulator configuration from Hydra/OmegaConf input."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, Mapping

from omegaconf import DictConfig, OmegaConf

from .maintenance.profiles import (
    DEFAULT_PROFILES,
    MaintenanceConstraints,
    MaintenanceProfile,
    MaintenanceType,
    PreferredHours,
)
from .runtime.engine import SimulationConfig
from .sim.telemetry import FaultRates


def _hours(value: Any) -> timedelta:
    return timedelta(hours=float(value))


def _constraints(section: Mapping[str, Any]) -> MaintenanceConstraints:
    defaults = MaintenanceConstraints()
    preferred = section.get("preferred_hours") or {}
    return MaintenanceConstraints(
        max_concurrent=int(section.get("max_concurrent", defaults.max_concurrent)),
        min_interval=_hours(section["min_interval_hours"]) if "min_interval_hours" in section else defaults.min_interval,
        max_impact_score=int(section.get("max_impact_score", defaults.max_impact_score)),
        staff_available=int(section.get("staff_available", defaults.staff_available)),
        preferred_hours=PreferredHours(
            start=int(preferred.get("start", defaults.preferred_hours.start)),
            end=int(preferred.get("end", defaults.preferred_hours.end)),
        ),
        max_attempts=int(section.get("max_attempts", defaults.max_attempts)),
    )


def _profiles(section: Mapping[str, Any]) -> Dict[MaintenanceType, MaintenanceProfile]:
    """Overlay per-type overrides (hours / staff) on the built-in table."""

    profiles = dict(DEFAULT_PROFILES)
    for name, override in section.items():
        kind = MaintenanceType(name)
        changes: Dict[str, Any] = {}
        if "interval_hours" in override:
            changes["interval"] = _hours(override["interval_hours"])
        if "duration_hours" in override:
            changes["duration"] = _hours(override["duration_hours"])
        if "staff_required" in override:
            changes["staff_required"] = int(override["staff_required"])
        profiles[kind] = replace(profiles[kind], **changes)
    return profiles


def build_simulation_config(cfg: DictConfig | Mapping[str, Any]) -> SimulationConfig:
    """Convert the ``simulation`` config group into a :class:`SimulationConfig`."""

    data = OmegaConf.to_container(cfg, resolve=True) if isinstance(cfg, DictConfig) else dict(cfg)
    assert isinstance(data, dict)
    defaults = SimulationConfig()
    faults = data.get("faults") or {}
    return SimulationConfig(
        tick_interval=float(data.get("tick_interval", defaults.tick_interval)),
        node_count=int(data.get("node_count", defaults.node_count)),
        seed=data.get("seed"),
        alert_retention=_hours(data["alert_retention_hours"]) if "alert_retention_hours" in data else defaults.alert_retention,
        faults=FaultRates(**faults),
        constraints=_constraints(data.get("constraints") or {}),
        profiles=_profiles(data.get("maintenance_types") or {}),
    )


__all__ = ["build_simulation_config"]
