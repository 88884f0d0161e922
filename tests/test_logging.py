from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from fleetsim.utils.logging import logger, setup_logging

def test_file_sink_uses_project_format(tmp_path):
    log_file = tmp_path / "logs" / "sim.log"
    setup_logging(log_file, level="DEBUG")
    try:
        logger.info("tick={} alerts={}", 3, 1)
    finally:
        setup_logging()
    text = log_file.read_text()
    assert "Logging configured" in text
    line = [l for l in text.splitlines() if "tick=3 alerts=1" in l][0]
    assert "| INFO     |" in line
    assert "fleetsim.tests.test_logging" in line or "fleetsim.test_logging" in line
    assert "\x1b[" not in line
