"""In-process storage backend, used by tests and for throwaway sessions."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime

from quietscore.errors import PersistenceFailure
from quietscore.models import DaySummary, Sample
from quietscore.storage.base import StorageBackend


class MemoryBackend(StorageBackend):
    """Dict/list backed store.  Records are copied in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._samples: dict[str, Sample] = {}
        self._summaries: dict[date, DaySummary] = {}

    def insert_sample(self, sample: Sample) -> None:
        with self._lock:
            if sample.id in self._samples:
                raise PersistenceFailure(f"duplicate sample id {sample.id}")
            self._samples[sample.id] = sample

    def fetch_samples(self, start: datetime, end: datetime) -> list[Sample]:
        with self._lock:
            found = [s for s in self._samples.values() if start <= s.timestamp < end]
        return sorted(found, key=lambda s: s.timestamp)

    def delete_samples(self, start: datetime, end: datetime) -> int:
        with self._lock:
            doomed = [k for k, s in self._samples.items() if start <= s.timestamp < end]
            for key in doomed:
                del self._samples[key]
        return len(doomed)

    def get_summary(self, day: date) -> DaySummary | None:
        with self._lock:
            found = self._summaries.get(day)
            return replace(found) if found is not None else None

    def insert_summary(self, summary: DaySummary) -> None:
        with self._lock:
            if summary.day in self._summaries:
                raise PersistenceFailure(f"summary for {summary.day} already exists")
            self._summaries[summary.day] = replace(summary)

    def update_summary(self, summary: DaySummary) -> None:
        with self._lock:
            current = self._summaries.get(summary.day)
            if current is None or current.id != summary.id:
                raise PersistenceFailure(f"no summary {summary.id} for {summary.day}")
            self._summaries[summary.day] = replace(summary)

    def fetch_summaries(self, first_day: date, last_day: date) -> list[DaySummary]:
        with self._lock:
            found = [replace(s) for d, s in self._summaries.items() if first_day <= d <= last_day]
        return sorted(found, key=lambda s: s.day, reverse=True)

    def __len__(self) -> int:
        return len(self._samples)
