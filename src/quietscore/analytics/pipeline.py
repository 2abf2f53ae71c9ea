"""Analytics pipeline: wire stored samples into the engine and back.

These helpers are the only place the engine meets the store.  The
scheduler's cycle uses :func:`recompute_day`; history imports use
:func:`ingest_samples`; a dashboard wants :func:`compute_day_view` because
the persisted summary drops the hourly timeline.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Iterable

from quietscore.analytics.engine import compute_day_summary
from quietscore.config import Configuration, DEFAULT_CONFIG
from quietscore.models import ComputedDayView, DaySummary, as_day
from quietscore.storage.store import SummaryStore

logger = logging.getLogger(__name__)


def compute_day_view(
    store: SummaryStore,
    day: date | datetime,
    config: Configuration = DEFAULT_CONFIG,
) -> ComputedDayView:
    """Recompute a day's full view from its stored samples (no writes)."""
    return compute_day_summary(store.samples_for_day(day), day, config)


def recompute_day(
    store: SummaryStore,
    day: date | datetime,
    config: Configuration = DEFAULT_CONFIG,
) -> DaySummary:
    """Recompute a day from its samples and upsert the summary."""
    view = compute_day_view(store, day, config)
    return store.upsert_summary(day, view)


def ingest_samples(
    store: SummaryStore,
    readings: Iterable[tuple[datetime, float]],
    config: Configuration = DEFAULT_CONFIG,
) -> dict[date, DaySummary]:
    """Append a batch of ``(timestamp, decibel)`` readings.

    Each touched day is recomputed once after all its samples are in.
    Readings that are negative or not finite are skipped with a warning.

    Returns:
        The refreshed summaries keyed by day, oldest day first.
    """
    touched: set[date] = set()
    count = 0
    for timestamp, decibel in readings:
        if not math.isfinite(decibel) or decibel < 0:
            logger.warning("Skipping invalid reading %r at %s", decibel, timestamp.isoformat())
            continue
        store.append_sample(decibel, timestamp)
        touched.add(as_day(timestamp))
        count += 1

    refreshed = {day: recompute_day(store, day, config) for day in sorted(touched)}
    logger.info("Ingested %d samples across %d day(s)", count, len(refreshed))
    return refreshed
