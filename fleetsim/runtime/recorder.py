"""Offline history recorder running the engine on a simulated clock."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from tqdm import tqdm

from ..utils.fileio import write_parquet
from ..utils.logging import logger
from .engine import SimulationEngine


@dataclass
class RecorderConfig:
    ticks: int = 720
    output: Path = Path("data/fleet_history.parquet")
    start: Optional[datetime] = None
    progress: bool = True


class HistoryRecorder:
    """Tick the engine ``ticks`` times and store one row per node per tick."""

    def __init__(self, engine: SimulationEngine, config: RecorderConfig):
        self.engine = engine
        self.config = config

    def collect(self) -> pd.DataFrame:
        step = timedelta(seconds=self.engine.config.tick_interval)
        now = self.config.start or self.engine.clock()
        rows: List[Dict[str, object]] = []
        for _ in tqdm(range(self.config.ticks), disable=not self.config.progress, desc="ticks"):
            self.engine.tick(now)
            for node in self.engine.fleet:
                m = node.measurement
                if m is None:
                    continue
                main, secondary = m.heads
                rows.append(
                    {
                        "time": now,
                        "node_id": node.id,
                        "status": node.status.value,
                        "mode": m.mode.value,
                        "congestion": main.statistics.congestion,
                        "vehicle_volume": main.statistics.vehicle_volume,
                        "emergency_override": main.statistics.emergency_override,
                        "green_main": main.statistics.adapted_green_time,
                        "green_secondary": secondary.statistics.adapted_green_time,
                        "alerts": len(node.alerts),
                    }
                )
            now += step
        return pd.DataFrame(rows)

    def run(self) -> Path:
        df = self.collect()
        path = write_parquet(df, self.config.output)
        logger.info("Wrote {} rows ({} ticks) to {}", len(df), self.config.ticks, path)
        return path


__all__ = ["HistoryRecorder", "RecorderConfig"]
