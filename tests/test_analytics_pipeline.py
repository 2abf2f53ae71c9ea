"""Tests for quietscore.analytics.pipeline -- store-backed recompute and ingest."""

from datetime import timedelta

import pytest

from quietscore.analytics.pipeline import compute_day_view, ingest_samples, recompute_day

from conftest import at


class TestRecomputeDay:
    def test_sample_count_matches_stored_samples(self, store, day):
        for minute in range(5):
            store.append_sample(35.0, at(8, minute))
        store.append_sample(35.0, at(8, day=day + timedelta(days=1)))
        summary = recompute_day(store, day)
        assert summary.sample_count == 5
        assert store.fetch_summary(day).sample_count == 5

    def test_empty_day_gets_default_summary(self, store, day):
        summary = recompute_day(store, day)
        assert summary.quiet_score == 100.0
        assert summary.sample_count == 0

    def test_recompute_after_purge(self, store, day):
        store.append_sample(90.0, at(8))
        recompute_day(store, day)
        store.delete_samples(day)
        assert store.fetch_summary(day).sample_count == 1
        assert recompute_day(store, day).sample_count == 0


class TestComputeDayView:
    def test_full_view_from_store(self, store, day):
        store.append_sample(35.0, at(8))
        store.append_sample(35.0, at(8, 30))
        store.append_sample(90.0, at(14))
        view = compute_day_view(store, day)
        assert view.quiet_score == pytest.approx(28.5)
        assert [p.hour for p in view.hourly_points] == [8, 14]

    def test_does_not_write(self, store, day):
        store.append_sample(35.0, at(8))
        compute_day_view(store, day)
        assert store.fetch_summary(day) is None


class TestIngestSamples:
    def test_multiple_days(self, store, day):
        yesterday = day - timedelta(days=1)
        readings = [
            (at(8), 35.0),
            (at(22, day=yesterday), 80.0),
            (at(14), 90.0),
            (at(23, day=yesterday), 20.0),
        ]
        refreshed = ingest_samples(store, readings)
        assert list(refreshed) == [yesterday, day]
        assert refreshed[day].sample_count == 2
        assert refreshed[yesterday].sample_count == 2
        assert refreshed[yesterday].noisiest_hour == 22

    def test_empty_batch(self, store):
        assert ingest_samples(store, []) == {}

    def test_invalid_reading_skipped(self, store, day):
        readings = [(at(8), 35.0), (at(9), float("inf")), (at(10), -1.0), (at(14), 90.0)]
        refreshed = ingest_samples(store, readings)
        assert refreshed[day].sample_count == 2
        assert [s.decibel for s in store.samples_for_day(day)] == [35.0, 90.0]
        assert store.fetch_summary(day).sample_count == 2
