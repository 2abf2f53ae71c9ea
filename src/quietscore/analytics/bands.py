"""Exposure bands and the distribution-based quiet score.

Each reading falls into one of four half-open bands bounded by the
configured thresholds.  The quiet score rewards up to two hours of quiet
exposure and charges a steeper per-minute penalty for each louder band.
The coefficients are fixed policy; existing score history depends on them.
"""

from __future__ import annotations

from enum import Enum

from quietscore.config import Configuration, DEFAULT_CONFIG
from quietscore.models import ExposureDistribution


class Band(Enum):
    QUIET = "quiet"
    MODERATE = "moderate"
    LOUD = "loud"
    INTENSE = "intense"


# ---------------------------------------------------------------------------
# Score policy
# ---------------------------------------------------------------------------

SCORE_BASE = 30.0
SCORE_MIN = 0.0
SCORE_MAX = 100.0
EMPTY_DAY_SCORE = 100.0  # no data counts as quiet

QUIET_REWARD_PER_MIN = 0.5
QUIET_REWARD_CAP_MIN = 120.0  # 2 hours
MODERATE_PENALTY_PER_MIN = 0.6
LOUD_PENALTY_PER_MIN = 1.2
INTENSE_PENALTY_PER_MIN = 2.5


def classify(decibel: float, config: Configuration = DEFAULT_CONFIG) -> Band:
    """Map a decibel reading to its exposure band.

    ``[0, quiet)`` is quiet, ``[quiet, moderate)`` moderate,
    ``[moderate, loud)`` loud and anything at or above ``loud`` intense.
    """
    if decibel < config.quiet_threshold:
        return Band.QUIET
    if decibel < config.moderate_threshold:
        return Band.MODERATE
    if decibel < config.loud_threshold:
        return Band.LOUD
    return Band.INTENSE


def score_from_distribution(distribution: ExposureDistribution) -> float:
    """Compute the 0-100 quiet score from per-band exposure seconds.

    Returns 100 when the distribution is empty.
    """
    if distribution.total_seconds <= 0:
        return EMPTY_DAY_SCORE

    quiet_min = distribution.quiet_seconds / 60.0
    moderate_min = distribution.moderate_seconds / 60.0
    loud_min = distribution.loud_seconds / 60.0
    intense_min = distribution.intense_seconds / 60.0

    score = SCORE_BASE
    score += min(quiet_min, QUIET_REWARD_CAP_MIN) * QUIET_REWARD_PER_MIN
    score -= moderate_min * MODERATE_PENALTY_PER_MIN
    score -= loud_min * LOUD_PENALTY_PER_MIN
    score -= intense_min * INTENSE_PENALTY_PER_MIN

    return max(SCORE_MIN, min(SCORE_MAX, score))
