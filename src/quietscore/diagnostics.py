"""Logging setup.  Every module logs through ``logging.getLogger(__name__)``;
this installs the handlers that turn those records into the diagnostics sink.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> logging.Logger:
    """Configure the ``quietscore`` logger hierarchy.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...).
        log_file: Optional file that receives the same records.

    Returns:
        The package logger.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger("quietscore")
    root.setLevel(log_level)
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root
