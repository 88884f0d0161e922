"""Run the simulation offline and dump per-node telemetry history to Parquet."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import hydra
from hydra.utils import to_absolute_path
from omegaconf import DictConfig

from fleetsim.config import build_simulation_config
from fleetsim.runtime.engine import SimulationEngine
from fleetsim.runtime.recorder import HistoryRecorder, RecorderConfig
from fleetsim.utils.logging import setup_logging


@hydra.main(config_path="../configs", config_name="record", version_base=None)
def main(cfg: DictConfig) -> None:
    setup_logging(level=cfg.log_level)

    engine = SimulationEngine(build_simulation_config(cfg.simulation))
    # Resolve paths because Hydra changes CWD to outputs/...
    out_path = Path(to_absolute_path(cfg.output))
    start = datetime.fromisoformat(cfg.start) if cfg.start else None
    recorder = HistoryRecorder(engine, RecorderConfig(ticks=int(cfg.ticks), output=out_path, start=start))
    recorder.run()


if __name__ == "__main__":
    main()
