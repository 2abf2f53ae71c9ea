"""Turn one day's decibel samples into a :class:`ComputedDayView`.

Every sample is charged exactly one ``sample_interval_seconds`` of exposure
in its band, whatever the real spacing between samples; gaps are neither
interpolated nor weighted.  The function is pure: no I/O, no clock, and the
same samples always give the same view.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

import numpy as np

from quietscore.analytics.bands import Band, classify, score_from_distribution
from quietscore.config import Configuration, DEFAULT_CONFIG
from quietscore.models import (
    ComputedDayView,
    ExposureDistribution,
    HourlyPoint,
    Sample,
    as_day,
    day_bounds,
)


def empty_view(day: date | datetime) -> ComputedDayView:
    """The view of a day without samples: score 100, nothing else."""
    return ComputedDayView(
        day=as_day(day),
        quiet_score=score_from_distribution(ExposureDistribution()),
        average_decibel=0.0,
        sample_count=0,
        quietest_hour=None,
        noisiest_hour=None,
    )


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def exposure_distribution(
    samples: Iterable[Sample],
    config: Configuration = DEFAULT_CONFIG,
) -> ExposureDistribution:
    """Accumulate one sample interval per sample into its band."""
    seconds = {band: 0.0 for band in Band}
    for sample in samples:
        seconds[classify(sample.decibel, config)] += config.sample_interval_seconds
    return ExposureDistribution(
        quiet_seconds=seconds[Band.QUIET],
        moderate_seconds=seconds[Band.MODERATE],
        loud_seconds=seconds[Band.LOUD],
        intense_seconds=seconds[Band.INTENSE],
    )


def hourly_points(samples: Iterable[Sample], day: date) -> list[HourlyPoint]:
    """Mean level per hour of day, ascending, hours without samples omitted."""
    groups: dict[int, list[float]] = defaultdict(list)
    for sample in samples:
        groups[sample.hour].append(sample.decibel)

    start, _ = day_bounds(day)
    return [
        HourlyPoint(
            hour=hour,
            average_decibel=float(np.mean(groups[hour])),
            representative_instant=start + timedelta(hours=hour),
        )
        for hour in sorted(groups)
    ]


def _extreme_hours(points: list[HourlyPoint]) -> tuple[int | None, int | None]:
    """Return (quietest, noisiest) hour; the earliest hour wins ties."""
    if not points:
        return None, None
    quietest = noisiest = points[0]
    for point in points[1:]:
        if point.average_decibel < quietest.average_decibel:
            quietest = point
        if point.average_decibel > noisiest.average_decibel:
            noisiest = point
    return quietest.hour, noisiest.hour


# ---------------------------------------------------------------------------
# Day summary
# ---------------------------------------------------------------------------


def compute_day_summary(
    samples: Iterable[Sample],
    day: date | datetime,
    config: Configuration = DEFAULT_CONFIG,
) -> ComputedDayView:
    """Compute the quiet score, averages and hourly timeline for one day.

    Args:
        samples: Samples in any order.  Those outside the day's
            ``[midnight, next midnight)`` window are ignored.
        day: The calendar day (a datetime is truncated to its date).
        config: Thresholds and sample interval; must match the scheduler's.

    Returns:
        A ComputedDayView.  An empty day yields :func:`empty_view`.
    """
    key = as_day(day)
    start, end = day_bounds(key)

    # sorted() is stable, so equal timestamps keep their input order
    in_day = sorted(
        (s for s in samples if start <= s.timestamp < end),
        key=lambda s: s.timestamp,
    )
    if not in_day:
        return empty_view(key)

    levels = np.asarray([s.decibel for s in in_day], dtype=np.float64)
    distribution = exposure_distribution(in_day, config)
    points = hourly_points(in_day, key)
    quietest, noisiest = _extreme_hours(points)

    return ComputedDayView(
        day=key,
        quiet_score=score_from_distribution(distribution),
        average_decibel=float(np.mean(levels)),
        sample_count=len(in_day),
        quietest_hour=quietest,
        noisiest_hour=noisiest,
        hourly_points=tuple(points),
        distribution=distribution,
    )
