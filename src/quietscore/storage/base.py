"""Contract for the persistent store that backs :class:`SummaryStore`.

A backend only needs insert, a time-window fetch sorted by key, bulk delete
and update-in-place for the two record shapes.  It does no locking across
operations; read-modify-write sequences are serialized by the store.
"""

from __future__ import annotations

from datetime import date, datetime

from quietscore.models import DaySummary, Sample


class StorageBackend:
    """Base class for persistence backends.

    Implementations raise :class:`~quietscore.errors.PersistenceFailure`
    for any failure of the underlying storage.
    """

    # --- samples ---

    def insert_sample(self, sample: Sample) -> None:
        raise NotImplementedError

    def fetch_samples(self, start: datetime, end: datetime) -> list[Sample]:
        """Samples with ``start <= timestamp < end``, oldest first."""
        raise NotImplementedError

    def delete_samples(self, start: datetime, end: datetime) -> int:
        """Delete samples with ``start <= timestamp < end``; return the count."""
        raise NotImplementedError

    # --- day summaries ---

    def get_summary(self, day: date) -> DaySummary | None:
        raise NotImplementedError

    def insert_summary(self, summary: DaySummary) -> None:
        """Insert a new record; a second record for the same day must fail."""
        raise NotImplementedError

    def update_summary(self, summary: DaySummary) -> None:
        """Overwrite the record with ``summary.id`` in place."""
        raise NotImplementedError

    def fetch_summaries(self, first_day: date, last_day: date) -> list[DaySummary]:
        """Summaries with ``first_day <= day <= last_day``, newest first."""
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources."""
