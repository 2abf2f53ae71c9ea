"""Tests for quietscore.analytics.bands -- classification and the quiet score."""

import pytest

from quietscore.analytics.bands import (
    Band,
    classify,
    score_from_distribution,
    EMPTY_DAY_SCORE,
    SCORE_MAX,
    SCORE_MIN,
)
from quietscore.config import Configuration
from quietscore.models import ExposureDistribution


def dist(quiet_min=0.0, moderate_min=0.0, loud_min=0.0, intense_min=0.0):
    return ExposureDistribution(
        quiet_seconds=quiet_min * 60,
        moderate_seconds=moderate_min * 60,
        loud_seconds=loud_min * 60,
        intense_seconds=intense_min * 60,
    )


class TestClassify:
    def test_quiet(self):
        assert classify(0.0) is Band.QUIET
        assert classify(39.99) is Band.QUIET

    def test_boundary_40_is_moderate(self):
        assert classify(40.0) is Band.MODERATE

    def test_boundary_70_is_loud(self):
        assert classify(69.99) is Band.MODERATE
        assert classify(70.0) is Band.LOUD

    def test_boundary_85_is_intense(self):
        assert classify(84.99) is Band.LOUD
        assert classify(85.0) is Band.INTENSE
        assert classify(120.0) is Band.INTENSE

    def test_custom_thresholds(self):
        config = Configuration(quiet_threshold=10.0, moderate_threshold=20.0, loud_threshold=30.0)
        assert classify(15.0, config) is Band.MODERATE
        assert classify(25.0, config) is Band.LOUD
        assert classify(30.0, config) is Band.INTENSE

    @pytest.mark.parametrize("thresholds", [(40.0, 70.0, 85.0), (1.0, 2.0, 3.0), (30.0, 30.5, 100.0)])
    def test_bands_partition_range(self, thresholds):
        quiet, moderate, loud = thresholds
        config = Configuration(quiet_threshold=quiet, moderate_threshold=moderate, loud_threshold=loud)
        order = [Band.QUIET, Band.MODERATE, Band.LOUD, Band.INTENSE]
        previous = 0
        for step in range(0, 1300):
            db = step * 0.1
            idx = order.index(classify(db, config))
            # bands are contiguous and never go back down
            assert idx >= previous
            assert idx - previous <= 1
            previous = idx
            expected = sum(db >= t for t in thresholds)
            assert idx == expected


class TestScoreFromDistribution:
    def test_empty_is_100(self):
        assert score_from_distribution(ExposureDistribution()) == EMPTY_DAY_SCORE == 100.0

    def test_worked_example(self):
        # 2 quiet minutes, 1 intense minute
        assert score_from_distribution(dist(quiet_min=2, intense_min=1)) == pytest.approx(28.5)

    def test_quiet_reward_capped_at_120_minutes(self):
        at_cap = score_from_distribution(dist(quiet_min=120))
        beyond = score_from_distribution(dist(quiet_min=600))
        assert at_cap == pytest.approx(90.0)
        assert beyond == at_cap

    def test_clamped_to_zero(self):
        assert score_from_distribution(dist(intense_min=100)) == SCORE_MIN

    def test_penalty_coefficients(self):
        assert score_from_distribution(dist(moderate_min=10)) == pytest.approx(30 - 6.0)
        assert score_from_distribution(dist(loud_min=10)) == pytest.approx(30 - 12.0)
        assert score_from_distribution(dist(intense_min=10)) == pytest.approx(30 - 25.0)

    def test_non_increasing_in_louder_bands(self):
        base = dict(quiet_min=60.0, moderate_min=5.0, loud_min=5.0, intense_min=1.0)
        for key in ("moderate_min", "loud_min", "intense_min"):
            scores = [score_from_distribution(dist(**{**base, key: m})) for m in range(0, 200, 5)]
            assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_non_decreasing_in_quiet_up_to_cap(self):
        scores = [score_from_distribution(dist(quiet_min=m, moderate_min=3)) for m in range(0, 240, 10)]
        assert all(a <= b for a, b in zip(scores, scores[1:]))

    def test_always_in_bounds(self):
        for q in (0, 30, 500):
            for m in (0, 30, 500):
                for i in (0, 1, 50):
                    s = score_from_distribution(dist(q, m, 0, i))
                    assert SCORE_MIN <= s <= SCORE_MAX
