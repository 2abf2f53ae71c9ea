"""Capture-side collaborators: microphone level, permission, OS refresh.

The real capture API is a black box that yields an instantaneous power
reading in dBFS.  :func:`normalize_power` maps that onto a bounded 0-120 dB
scale; nothing but that single number ever leaves the capture session.

The base classes document the contracts the scheduler relies on.  The
simulated implementations drive the ``monitor`` command and the tests.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

import numpy as np

logger = logging.getLogger(__name__)

NOISE_FLOOR_DBFS = -80.0  # readings at or below count as silence
MAX_DECIBEL = 120.0


def normalize_power(power_dbfs: float) -> float:
    """Map an average-power reading (dBFS) into ``[0, 120]``.

    The reading is converted to linear amplitude and scaled so that full
    scale (0 dBFS) and above lands on 120.  Anything at or below the noise floor,
    or not a number, is 0.
    """
    if math.isnan(power_dbfs) or power_dbfs <= NOISE_FLOOR_DBFS:
        return 0.0
    level = 10.0 ** (min(power_dbfs, 0.0) / 20.0)
    return min(level * MAX_DECIBEL, MAX_DECIBEL)


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------


class CaptureDevice:
    """Source of power readings.

    ``open`` raises :class:`~quietscore.errors.CaptureUnavailable` when no
    session can be established.
    """

    async def open(self) -> Any:
        raise NotImplementedError

    async def read_power(self, session: Any) -> float:
        """Instantaneous average power in dBFS."""
        raise NotImplementedError

    async def close(self, session: Any) -> None:
        raise NotImplementedError


class PermissionProvider:
    async def request_permission(self) -> bool:
        """Suspend until the user or system answers; True when granted."""
        raise NotImplementedError


class CompletionReporter:
    def report(self, success: bool) -> None:
        raise NotImplementedError


class RefreshScheduler:
    """OS background-refresh scheduling.

    After ``request_opportunity`` the OS calls back, at a time of its
    choosing no earlier than ``not_before``, with a deadline and a
    :class:`CompletionReporter`.
    """

    def request_opportunity(self, not_before: datetime) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Simulated collaborators
# ---------------------------------------------------------------------------


class SimulatedCapture(CaptureDevice):
    """Gaussian power readings around ``mean_dbfs``."""

    def __init__(self, mean_dbfs: float = -30.0, spread_db: float = 6.0, seed: int | None = None):
        self.mean_dbfs = mean_dbfs
        self.spread_db = spread_db
        self._rng = np.random.default_rng(seed)
        self.open_sessions = 0

    async def open(self) -> object:
        self.open_sessions += 1
        return object()

    async def read_power(self, session: Any) -> float:
        await asyncio.sleep(0)
        return float(self._rng.normal(self.mean_dbfs, self.spread_db))

    async def close(self, session: Any) -> None:
        self.open_sessions = max(0, self.open_sessions - 1)


class StaticPermission(PermissionProvider):
    def __init__(self, granted: bool = True):
        self.granted = granted
        self.requests = 0

    async def request_permission(self) -> bool:
        self.requests += 1
        return self.granted


class LoggingReporter(CompletionReporter):
    """Reporter that logs and remembers each outcome."""

    def __init__(self) -> None:
        self.outcomes: list[bool] = []

    def report(self, success: bool) -> None:
        self.outcomes.append(success)
        logger.info("Background refresh %s", "completed" if success else "incomplete")


RefreshHandler = Callable[[datetime, CompletionReporter], Awaitable[Any]]


class LoopRefreshScheduler(RefreshScheduler):
    """Deliver refresh opportunities on the running event loop.

    Stands in for the OS: each request fires once ``not_before`` has passed
    and grants ``window_seconds`` until the deadline.
    """

    def __init__(
        self,
        window_seconds: float = 30.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._handler: RefreshHandler | None = None
        self._handles: list[asyncio.TimerHandle] = []
        self._tasks: set[asyncio.Task] = set()
        self.requests: list[datetime] = []
        self.reporter = LoggingReporter()

    def bind(self, handler: RefreshHandler) -> None:
        self._handler = handler

    def request_opportunity(self, not_before: datetime) -> None:
        self.requests.append(not_before)
        if self._handler is None:
            return
        delay = max(0.0, (not_before - self._clock()).total_seconds())
        loop = asyncio.get_running_loop()
        self._handles.append(loop.call_later(delay, self._deliver))

    def _deliver(self) -> None:
        deadline = self._clock() + timedelta(seconds=self.window_seconds)
        task = asyncio.ensure_future(self._handler(deadline, self.reporter))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def shutdown(self) -> None:
        """Drop pending opportunities and wait for delivered ones."""
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
