from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

omegaconf = pytest.importorskip("omegaconf")
from omegaconf import OmegaConf

from fleetsim.config import build_simulation_config
from fleetsim.maintenance.profiles import DEFAULT_PROFILES, MaintenanceConstraints, MaintenanceType, PreferredHours
from fleetsim.sim.telemetry import FaultRates

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"


def test_shipped_config_matches_defaults():
    cfg = OmegaConf.load(CONFIG_DIR / "simulation.yaml")
    sim = build_simulation_config(cfg.simulation)
    assert sim.tick_interval == 5.0
    assert sim.node_count == 8
    assert sim.seed is None
    assert sim.alert_retention == timedelta(hours=1)
    assert sim.faults == FaultRates()
    assert sim.constraints == MaintenanceConstraints()
    assert sim.profiles == dict(DEFAULT_PROFILES)


def test_overrides_are_applied():
    cfg = OmegaConf.create(
        {
            "tick_interval": 1,
            "node_count": 3,
            "seed": 7,
            "constraints": {"max_concurrent": 3, "min_interval_hours": 6, "preferred_hours": {"start": 20, "end": 4}},
            "maintenance_types": {"routine": {"duration_hours": 3, "staff_required": 2}},
        }
    )
    sim = build_simulation_config(cfg)
    assert sim.tick_interval == 1.0 and sim.node_count == 3 and sim.seed == 7
    assert sim.constraints.max_concurrent == 3
    assert sim.constraints.min_interval == timedelta(hours=6)
    assert sim.constraints.preferred_hours == PreferredHours(20, 4)
    assert sim.constraints.staff_available == 4
    routine = sim.profiles[MaintenanceType.ROUTINE]
    assert routine.duration == timedelta(hours=3)
    assert routine.staff_required == 2
    assert routine.interval == timedelta(days=7)
    assert sim.profiles[MaintenanceType.MAJOR] == DEFAULT_PROFILES[MaintenanceType.MAJOR]


@pytest.mark.parametrize("interval", [0, -5])
def test_non_positive_tick_interval_is_rejected(interval):
    with pytest.raises(ValueError, match="tick_interval"):
        build_simulation_config(OmegaConf.create({"tick_interval": interval}))
