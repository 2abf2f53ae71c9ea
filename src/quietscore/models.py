"""Data model: raw samples, per-day summaries and the transient computed view.

Only a timestamp and a decibel level are ever kept per sample; no audio
content is stored.  Timestamps are naive local datetimes and a day is keyed
by its ``date`` (the local-midnight start of the day).
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, time, timedelta
from typing import Any


# ---------------------------------------------------------------------------
# Day keys
# ---------------------------------------------------------------------------


def as_day(value: date | datetime) -> date:
    """Normalize a date or datetime to its calendar-day key."""
    if isinstance(value, datetime):
        return value.date()
    return value


def day_bounds(value: date | datetime) -> tuple[datetime, datetime]:
    """Return the half-open ``[midnight, next midnight)`` window for a day."""
    start = datetime.combine(as_day(value), time.min)
    return start, start + timedelta(days=1)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sample:
    """One timestamped decibel reading."""

    id: str
    timestamp: datetime
    decibel: float

    @classmethod
    def create(cls, decibel: float, timestamp: datetime) -> Sample:
        return cls(id=new_id(), timestamp=timestamp, decibel=float(decibel))

    @property
    def day(self) -> date:
        return self.timestamp.date()

    @property
    def hour(self) -> int:
        return self.timestamp.hour

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "decibel": self.decibel,
        }


@dataclass
class DaySummary:
    """Persisted snapshot of one day's quiet score.

    At most one record exists per ``day``; recomputation replaces every
    scalar field and refreshes ``updated_at`` while keeping ``id``.
    """

    day: date
    quiet_score: float
    average_decibel: float
    sample_count: int
    quietest_hour: int | None
    noisiest_hour: int | None
    updated_at: datetime
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["day"] = self.day.isoformat()
        d["updated_at"] = self.updated_at.isoformat()
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"DaySummary({self.day.isoformat()}: "
            f"score={self.quiet_score:.0f}, "
            f"avg={self.average_decibel:.1f}dB, "
            f"samples={self.sample_count})"
        )


# ---------------------------------------------------------------------------
# Computed (transient) view
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HourlyPoint:
    """Mean level for one hour of the day that had samples."""

    hour: int
    average_decibel: float
    representative_instant: datetime


@dataclass(frozen=True)
class ExposureDistribution:
    """Seconds of exposure accumulated per band."""

    quiet_seconds: float = 0.0
    moderate_seconds: float = 0.0
    loud_seconds: float = 0.0
    intense_seconds: float = 0.0

    @property
    def total_seconds(self) -> float:
        return self.quiet_seconds + self.moderate_seconds + self.loud_seconds + self.intense_seconds

    @property
    def quiet_ratio(self) -> float:
        """Share of exposure spent in the quiet band (0 when empty)."""
        total = self.total_seconds
        if total <= 0:
            return 0.0
        return self.quiet_seconds / total


@dataclass(frozen=True)
class ComputedDayView:
    """Full analytics output for one day.

    The persisted :class:`DaySummary` is a projection of this view; the
    hourly timeline and the distribution are never stored.
    """

    day: date
    quiet_score: float
    average_decibel: float
    sample_count: int
    quietest_hour: int | None
    noisiest_hour: int | None
    hourly_points: tuple[HourlyPoint, ...] = ()
    distribution: ExposureDistribution = field(default_factory=ExposureDistribution)

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "quiet_score": self.quiet_score,
            "average_decibel": self.average_decibel,
            "sample_count": self.sample_count,
            "quietest_hour": self.quietest_hour,
            "noisiest_hour": self.noisiest_hour,
            "hourly_points": [
                {
                    "hour": p.hour,
                    "average_decibel": p.average_decibel,
                    "representative_instant": p.representative_instant.isoformat(),
                }
                for p in self.hourly_points
            ],
            "distribution": {
                "quiet_seconds": self.distribution.quiet_seconds,
                "moderate_seconds": self.distribution.moderate_seconds,
                "loud_seconds": self.distribution.loud_seconds,
                "intense_seconds": self.distribution.intense_seconds,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"ComputedDayView({self.day.isoformat()}: "
            f"score={self.quiet_score:.1f}, "
            f"avg={self.average_decibel:.1f}dB, "
            f"hours={len(self.hourly_points)}, "
            f"quiet={self.distribution.quiet_ratio:.0%})"
        )
