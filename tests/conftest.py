"""Shared fixtures and fake collaborators for the quietscore test suite."""

from __future__ import annotations

import asyncio
import time
from datetime import date, datetime

import pytest

from quietscore.capture import (
    CaptureDevice,
    CompletionReporter,
    PermissionProvider,
    RefreshScheduler,
)
from quietscore.errors import CaptureUnavailable
from quietscore.models import Sample
from quietscore.storage import MemoryBackend, SqlBackend, SummaryStore


DAY = date(2026, 2, 13)


def at(hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> datetime:
    """Local timestamp on ``day`` (default DAY)."""
    return datetime(day.year, day.month, day.day, hour, minute, second)


def make_sample(hour: int, minute: int, decibel: float, day: date = DAY) -> Sample:
    return Sample.create(decibel, at(hour, minute, day=day))


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeCapture(CaptureDevice):
    """Scripted power readings with counters for session bookkeeping."""

    def __init__(
        self,
        powers: list[float] | None = None,
        default_power: float = -20.0,  # -> 12 dB
        read_delay: float = 0.0,
        fail_open: bool = False,
        fail_read: bool = False,
    ) -> None:
        self.powers = list(powers or [])
        self.default_power = default_power
        self.read_delay = read_delay
        self.fail_open = fail_open
        self.fail_read = fail_read
        self.opened = 0
        self.closed = 0
        self.reads = 0
        self.active = 0
        self.max_active = 0

    @property
    def open_sessions(self) -> int:
        return self.opened - self.closed

    async def open(self) -> str:
        if self.fail_open:
            raise CaptureUnavailable("no microphone")
        self.opened += 1
        return f"session-{self.opened}"

    async def read_power(self, session) -> float:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.read_delay:
                await asyncio.sleep(self.read_delay)
            if self.fail_read:
                raise OSError("device busy")
            self.reads += 1
            return self.powers.pop(0) if self.powers else self.default_power
        finally:
            self.active -= 1

    async def close(self, session) -> None:
        self.closed += 1


class GatedPermission(PermissionProvider):
    """Permission prompt that stays open until ``answer`` is called."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.calls = 0
        self._event = asyncio.Event()

    def answer(self, granted: bool | None = None) -> None:
        if granted is not None:
            self.granted = granted
        self._event.set()

    async def request_permission(self) -> bool:
        self.calls += 1
        await self._event.wait()
        return self.granted


class RecordingRefresh(RefreshScheduler):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.requests: list[datetime] = []

    def request_opportunity(self, not_before: datetime) -> None:
        if self.fail:
            raise RuntimeError("scheduler unavailable")
        self.requests.append(not_before)


class RecordingReporter(CompletionReporter):
    def __init__(self) -> None:
        self.outcomes: list[bool] = []

    def report(self, success: bool) -> None:
        self.outcomes.append(success)


class SlowMemoryBackend(MemoryBackend):
    """Widens the read-modify-write window so upsert races show up."""

    def get_summary(self, day):
        found = super().get_summary(day)
        time.sleep(0.002)
        return found


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def day() -> date:
    return DAY


@pytest.fixture
def memory_store() -> SummaryStore:
    return SummaryStore(MemoryBackend())


@pytest.fixture
def sql_store(tmp_path) -> SummaryStore:
    store = SummaryStore(SqlBackend(f"sqlite:///{tmp_path / 'quietscore.db'}"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path) -> SummaryStore:
    if request.param == "memory":
        yield SummaryStore(MemoryBackend())
        return
    s = SummaryStore(SqlBackend(f"sqlite:///{tmp_path / 'quietscore.db'}"))
    yield s
    s.close()
