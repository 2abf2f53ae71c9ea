"""Summary store: raw samples in, one cached summary per day out.

History views read :class:`DaySummary` records instead of rescanning raw
samples.  Summaries outlive their samples: :meth:`SummaryStore.delete_samples`
purges raw readings but leaves the day's aggregate in place.

Failures of the backend surface as ``PersistenceFailure``; nothing here
retries.
"""

from __future__ import annotations

import logging
import math
import threading
import weakref
from datetime import date, datetime, timedelta
from typing import Callable

import numpy as np

from quietscore.models import ComputedDayView, DaySummary, Sample, as_day, day_bounds
from quietscore.storage.base import StorageBackend
from quietscore.storage.memory import MemoryBackend

logger = logging.getLogger(__name__)

WEEK_DAYS = 7


class SummaryStore:
    """Sample log plus per-day summary cache over a :class:`StorageBackend`."""

    def __init__(
        self,
        backend: StorageBackend | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.backend = backend if backend is not None else MemoryBackend()
        self._clock = clock
        # entries vanish once no upsert holds or waits on the lock
        self._day_locks: weakref.WeakValueDictionary[date, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._day_locks_guard = threading.Lock()

    def _lock_for(self, day: date) -> threading.Lock:
        with self._day_locks_guard:
            lock = self._day_locks.get(day)
            if lock is None:
                lock = self._day_locks[day] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def append_sample(self, decibel: float, timestamp: datetime | None = None) -> Sample:
        """Persist a new sample (``timestamp`` defaults to now)."""
        if not math.isfinite(decibel) or decibel < 0:
            raise ValueError(f"decibel must be a finite value >= 0, got {decibel!r}")
        sample = Sample.create(decibel, timestamp if timestamp is not None else self._clock())
        self.backend.insert_sample(sample)
        return sample

    def samples_for_day(self, day: date | datetime) -> list[Sample]:
        start, end = day_bounds(day)
        return self.backend.fetch_samples(start, end)

    def delete_samples(self, day: date | datetime) -> int:
        """Purge the raw samples of one day.  The summary is retained."""
        start, end = day_bounds(day)
        removed = self.backend.delete_samples(start, end)
        logger.info("Purged %d samples for %s", removed, as_day(day).isoformat())
        return removed

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def upsert_summary(self, day: date | datetime, view: ComputedDayView) -> DaySummary:
        """Insert or overwrite the summary for ``day`` from ``view``.

        The read-modify-write is serialized per day, so concurrent callers
        never create a second record or mix fields from two computations.
        An existing record keeps its ``id``; every scalar is replaced and
        ``updated_at`` refreshed.
        """
        key = as_day(day)
        with self._lock_for(key):
            existing = self.backend.get_summary(key)
            summary = DaySummary(
                day=key,
                quiet_score=view.quiet_score,
                average_decibel=view.average_decibel,
                sample_count=view.sample_count,
                quietest_hour=view.quietest_hour,
                noisiest_hour=view.noisiest_hour,
                updated_at=self._clock(),
            )
            if existing is None:
                self.backend.insert_summary(summary)
            else:
                summary.id = existing.id
                self.backend.update_summary(summary)
        logger.debug("Upserted %r", summary)
        return summary

    def fetch_summary(self, day: date | datetime) -> DaySummary | None:
        return self.backend.get_summary(as_day(day))

    def fetch_range(
        self,
        last_n_days: int,
        reference_date: date | datetime | None = None,
    ) -> list[DaySummary]:
        """Summaries for the ``last_n_days`` days ending on ``reference_date``.

        The window is inclusive on both ends and the result is newest first.
        Days without a summary are absent, not zero-filled.
        """
        if last_n_days < 1:
            return []
        end_day = as_day(reference_date if reference_date is not None else self._clock())
        start_day = end_day - timedelta(days=last_n_days - 1)
        return self.backend.fetch_summaries(start_day, end_day)

    def weekly_average(self, reference_date: date | datetime | None = None) -> float | None:
        """Mean quiet score over the 7 days ending on ``reference_date``.

        Returns None when the week holds no summaries.
        """
        summaries = self.fetch_range(WEEK_DAYS, reference_date)
        if not summaries:
            return None
        return float(np.mean([s.quiet_score for s in summaries]))

    def close(self) -> None:
        self.backend.close()
