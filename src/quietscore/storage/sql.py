"""SQLite (or any SQLAlchemy URL) storage backend.

Tables:
    samples        id, timestamp (indexed), decibel
    day_summaries  id, day (unique), score fields, updated_at

The unique ``day`` column is the last line of defence against two records
for one day; :class:`SummaryStore` already serializes upserts per day.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from quietscore.errors import PersistenceFailure
from quietscore.models import DaySummary, Sample
from quietscore.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_URL = "sqlite:///quietscore.db"

metadata = MetaData()

samples_table = Table(
    "samples",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("timestamp", DateTime, nullable=False, index=True),
    Column("decibel", Float, nullable=False),
)

summaries_table = Table(
    "day_summaries",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("day", Date, nullable=False, unique=True),
    Column("quiet_score", Float, nullable=False),
    Column("average_decibel", Float, nullable=False),
    Column("sample_count", Integer, nullable=False),
    Column("quietest_hour", Integer),
    Column("noisiest_hour", Integer),
    Column("updated_at", DateTime, nullable=False),
)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def open_engine(url: str = DEFAULT_URL) -> Engine:
    """Create an engine; SQLite connections get WAL and relaxed sync."""
    if not url.startswith("sqlite"):
        return create_engine(url, future=True, pool_pre_ping=True)

    if _is_memory_sqlite(url):
        # one shared connection, otherwise every pool checkout is a new empty db
        eng = create_engine(
            url,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        eng = create_engine(
            url,
            future=True,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(eng, "connect")
        def _set_pragmas(dbapi_conn, _record) -> None:
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA journal_mode=WAL")
            cur.execute("PRAGMA synchronous=NORMAL")
            cur.close()

    return eng


def _row_to_sample(row) -> Sample:
    return Sample(id=row.id, timestamp=row.timestamp, decibel=row.decibel)


def _row_to_summary(row) -> DaySummary:
    return DaySummary(
        id=row.id,
        day=row.day,
        quiet_score=row.quiet_score,
        average_decibel=row.average_decibel,
        sample_count=row.sample_count,
        quietest_hour=row.quietest_hour,
        noisiest_hour=row.noisiest_hour,
        updated_at=row.updated_at,
    )


def _summary_values(summary: DaySummary) -> dict:
    return {
        "quiet_score": summary.quiet_score,
        "average_decibel": summary.average_decibel,
        "sample_count": summary.sample_count,
        "quietest_hour": summary.quietest_hour,
        "noisiest_hour": summary.noisiest_hour,
        "updated_at": summary.updated_at,
    }


class SqlBackend(StorageBackend):
    """SQLAlchemy Core backend.  Each operation runs in its own transaction."""

    def __init__(self, url: str = DEFAULT_URL, engine: Engine | None = None) -> None:
        self.url = url
        try:
            self.engine = engine if engine is not None else open_engine(url)
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"cannot open store at {url}: {e}") from e
        logger.debug("Opened SQL store at %s", url)

    @contextmanager
    def _begin(self, action: str) -> Iterator:
        try:
            with self.engine.begin() as cx:
                yield cx
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"{action} failed: {e}") from e

    # --- samples ---

    def insert_sample(self, sample: Sample) -> None:
        with self._begin("insert sample") as cx:
            cx.execute(
                insert(samples_table).values(
                    id=sample.id, timestamp=sample.timestamp, decibel=sample.decibel
                )
            )

    def fetch_samples(self, start: datetime, end: datetime) -> list[Sample]:
        stmt = (
            select(samples_table)
            .where(samples_table.c.timestamp >= start, samples_table.c.timestamp < end)
            .order_by(samples_table.c.timestamp)
        )
        with self._begin("fetch samples") as cx:
            return [_row_to_sample(row) for row in cx.execute(stmt)]

    def delete_samples(self, start: datetime, end: datetime) -> int:
        stmt = delete(samples_table).where(
            samples_table.c.timestamp >= start, samples_table.c.timestamp < end
        )
        with self._begin("delete samples") as cx:
            return cx.execute(stmt).rowcount

    # --- day summaries ---

    def get_summary(self, day: date) -> DaySummary | None:
        stmt = select(summaries_table).where(summaries_table.c.day == day)
        with self._begin("fetch summary") as cx:
            row = cx.execute(stmt).first()
        return _row_to_summary(row) if row is not None else None

    def insert_summary(self, summary: DaySummary) -> None:
        try:
            with self.engine.begin() as cx:
                cx.execute(
                    insert(summaries_table).values(
                        id=summary.id, day=summary.day, **_summary_values(summary)
                    )
                )
        except IntegrityError as e:
            raise PersistenceFailure(f"summary for {summary.day} already exists") from e
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"insert summary failed: {e}") from e

    def update_summary(self, summary: DaySummary) -> None:
        stmt = (
            update(summaries_table)
            .where(summaries_table.c.id == summary.id, summaries_table.c.day == summary.day)
            .values(**_summary_values(summary))
        )
        with self._begin("update summary") as cx:
            if cx.execute(stmt).rowcount != 1:
                raise PersistenceFailure(f"no summary {summary.id} for {summary.day}")

    def fetch_summaries(self, first_day: date, last_day: date) -> list[DaySummary]:
        stmt = (
            select(summaries_table)
            .where(summaries_table.c.day >= first_day, summaries_table.c.day <= last_day)
            .order_by(summaries_table.c.day.desc())
        )
        with self._begin("fetch summaries") as cx:
            return [_row_to_summary(row) for row in cx.execute(stmt)]

    def close(self) -> None:
        self.engine.dispose()
