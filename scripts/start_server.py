"""Run the FastAPI application with the ticking simulation."""

from __future__ import annotations

from pathlib import Path

import hydra
import uvicorn
from hydra.utils import to_absolute_path
from omegaconf import DictConfig

from fleetsim.config import build_simulation_config
from fleetsim.serve.api import create_app
from fleetsim.utils.logging import logger, setup_logging


@hydra.main(config_path="../configs", config_name="simulation", version_base=None)
def main(cfg: DictConfig) -> None:
    log_file = Path(to_absolute_path(cfg.log_file)) if cfg.log_file else None
    setup_logging(log_file, level=cfg.log_level)

    sim_cfg = build_simulation_config(cfg.simulation)
    logger.info("Starting server on {}:{} ({} nodes)", cfg.server.host, cfg.server.port, sim_cfg.node_count)
    app = create_app(sim_cfg)
    uvicorn.run(app, host=cfg.server.host, port=int(cfg.server.port), reload=False)


if __name__ == "__main__":
    main()
