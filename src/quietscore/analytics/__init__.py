"""Analytics for ambient sound-level samples.

Modules:
    bands    -- band classification and the quiet score formula
    engine   -- per-day aggregation into a ComputedDayView
    pipeline -- store-backed recompute and ingest helpers
"""

from quietscore.analytics.bands import (
    Band,
    classify,
    score_from_distribution,
)
from quietscore.analytics.engine import (
    compute_day_summary,
    empty_view,
    exposure_distribution,
    hourly_points,
)
from quietscore.analytics.pipeline import (
    compute_day_view,
    recompute_day,
    ingest_samples,
)

__all__ = [
    # bands
    "Band",
    "classify",
    "score_from_distribution",
    # engine
    "compute_day_summary",
    "empty_view",
    "exposure_distribution",
    "hourly_points",
    # pipeline
    "compute_day_view",
    "recompute_day",
    "ingest_samples",
]
