"""Read and write sample logs as JSONL for offline import and export.

One reading per line::

    {"timestamp": "2026-02-13T08:00:00", "decibel": 35.0}
"""

from __future__ import annotations

import json
import math
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from quietscore.models import Sample

logger = logging.getLogger(__name__)


def parse_line(line: str) -> tuple[datetime, float] | None:
    """Parse one JSONL line; None if it is blank or malformed."""
    line = line.strip()
    if not line:
        return None
    try:
        entry = json.loads(line)
        timestamp = datetime.fromisoformat(entry["timestamp"])
        decibel = float(entry["decibel"])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        return None
    if not math.isfinite(decibel) or decibel < 0:
        return None
    return timestamp, decibel


def read_samples(path: str | Path) -> tuple[list[tuple[datetime, float]], int]:
    """Read ``(timestamp, decibel)`` pairs from a JSONL file.

    Returns:
        The readings in file order and the number of skipped lines.
    """
    readings: list[tuple[datetime, float]] = []
    skipped = 0
    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            parsed = parse_line(line)
            if parsed is None:
                if line.strip():
                    skipped += 1
                    logger.debug("line %d: invalid sample, skipping", line_num)
                continue
            readings.append(parsed)
    return readings, skipped


def write_samples(path: str | Path, samples: Iterable[Sample]) -> int:
    """Write samples as JSONL; returns the number written."""
    count = 0
    with open(path, "w") as f:
        for sample in samples:
            record = {"timestamp": sample.timestamp.isoformat(), "decibel": sample.decibel}
            f.write(json.dumps(record) + "\n")
            count += 1
    return count
