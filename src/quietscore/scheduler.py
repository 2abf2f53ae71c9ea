"""Sampling scheduler: when to measure, in foreground and background.

While monitoring is active a single timer task runs one
capture-compute-persist cycle per ``sample_interval_seconds``.  When the app
leaves the foreground the timer and the capture session are dropped and
sampling continues only through OS background-refresh opportunities, each
bounded by a hard deadline.

All transitions run on the owning event loop and cycles are serialized by
one lock, so no two cycles of a scheduler ever overlap.  Failures inside a
cycle are logged and never stop the scheduler; the next tick is the retry.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable

from quietscore.analytics.pipeline import recompute_day
from quietscore.capture import (
    CaptureDevice,
    CompletionReporter,
    PermissionProvider,
    RefreshScheduler,
    normalize_power,
)
from quietscore.config import Configuration, DEFAULT_CONFIG
from quietscore.errors import CaptureUnavailable, PermissionDenied, QuietScoreError
from quietscore.models import Sample
from quietscore.storage.store import SummaryStore

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    BACKGROUNDED = "backgrounded"
    STOPPING = "stopping"


class LifecyclePhase(Enum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"


SampleListener = Callable[[Sample], Any]


class SamplingScheduler:
    """Owns the capture session, the foreground timer and refresh requests.

    Construct one per app and hand it to whatever needs to start, stop or
    observe monitoring.
    """

    def __init__(
        self,
        capture: CaptureDevice,
        permissions: PermissionProvider,
        refresh: RefreshScheduler,
        store: SummaryStore,
        config: Configuration = DEFAULT_CONFIG,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.capture = capture
        self.permissions = permissions
        self.refresh = refresh
        self.store = store
        self.config = config
        self._clock = clock

        self._state = MonitorState.IDLE
        # bumped by stop/background; a start that resumes on a stale
        # generation abandons itself
        self._generation = 0
        self._session: Any = None
        self._session_lock = asyncio.Lock()
        self._cycle_lock = asyncio.Lock()
        self._timer_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._permission_request: asyncio.Future | None = None
        self._refresh_pending = False
        self._latest_sample: Sample | None = None
        self._listeners: list[SampleListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def refresh_pending(self) -> bool:
        """True while a background-refresh request is outstanding."""
        return self._refresh_pending

    @property
    def latest_sample(self) -> Sample | None:
        return self._latest_sample

    @property
    def session_open(self) -> bool:
        return self._session is not None

    def add_listener(self, listener: SampleListener) -> None:
        """Call ``listener(sample)`` after every successful cycle."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SampleListener) -> None:
        self._listeners.remove(listener)

    def _set_state(self, state: MonitorState) -> None:
        if state is not self._state:
            logger.debug("Monitor %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_monitoring(self) -> None:
        """Ask for permission, open the session and start the timer.

        A no-op while already starting or active.  A declined permission
        returns the scheduler to idle without raising.
        """
        if self._state in (MonitorState.STARTING, MonitorState.ACTIVE):
            return
        self._generation += 1
        generation = self._generation
        self._set_state(MonitorState.STARTING)

        granted = await self._request_permission()
        if generation != self._generation:
            return
        if not granted:
            logger.info("Capture permission not granted; monitoring disabled")
            self._set_state(MonitorState.IDLE)
            # a background cycle may have opened one while we waited
            await self._release_session()
            return

        try:
            await self._ensure_session()
        except CaptureUnavailable as e:
            if generation == self._generation:
                logger.warning("Failed to start monitoring: %s", e)
                self._set_state(MonitorState.IDLE)
            return
        if generation != self._generation:
            await self._release_session()
            return

        self._start_timer()
        self._request_refresh()
        self._set_state(MonitorState.ACTIVE)
        logger.info("Monitoring every %.0fs", self.config.sample_interval_seconds)

    async def stop_monitoring(self) -> None:
        """Cancel the timer and any in-flight cycle, release the session.

        Safe from any state, including mid-cycle.
        """
        self._generation += 1
        generation = self._generation
        self._set_state(MonitorState.STOPPING)
        await self._cancel_work(include_background=True)
        await self._release_session()
        if generation == self._generation:
            self._set_state(MonitorState.IDLE)

    async def handle_lifecycle_transition(self, phase: LifecyclePhase) -> None:
        """React to the app entering the foreground or the background."""
        if phase is LifecyclePhase.FOREGROUND:
            await self.start_monitoring()
            return

        was_monitoring = self._state in (MonitorState.STARTING, MonitorState.ACTIVE)
        self._generation += 1
        await self._cancel_work(include_background=False)
        await self._release_session()
        if was_monitoring:
            self._set_state(MonitorState.BACKGROUNDED)
        self._request_refresh()

    async def handle_background_refresh(
        self,
        deadline: datetime,
        reporter: CompletionReporter,
    ) -> bool:
        """Run one cycle inside an OS-granted window.

        The next opportunity is requested before any work starts.  A cycle
        still running at ``deadline`` is cancelled and reported as
        incomplete, which is an expected outcome.

        Returns:
            The value passed to ``reporter.report``.
        """
        self._refresh_pending = False
        self._request_refresh()

        remaining = (deadline - self._clock()).total_seconds()
        cycle = asyncio.ensure_future(self.run_cycle())
        self._inflight.add(cycle)
        cycle.add_done_callback(self._inflight.discard)

        success = False
        try:
            done, _ = await asyncio.wait({cycle}, timeout=max(remaining, 0.0))
            if not done:
                cycle.cancel()
                await asyncio.gather(cycle, return_exceptions=True)
                logger.info("Background refresh deadline reached; cycle cancelled")
            elif cycle.cancelled():
                logger.info("Background refresh cycle cancelled")
            elif cycle.exception() is not None:
                self._log_cycle_failure("background", cycle.exception())
            else:
                success = True
        finally:
            if not cycle.done():
                cycle.cancel()
            if self._state not in (MonitorState.STARTING, MonitorState.ACTIVE):
                await self._release_session()
            reporter.report(success)
        return success

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> Sample:
        """Capture one reading, persist it and refresh that day's summary.

        If persisting the sample succeeds but the summary update fails the
        sample stays stored and the summary catches up on the next cycle.

        Raises:
            CaptureUnavailable: No reading could be taken.
            PersistenceFailure: The store rejected a write.
        """
        async with self._cycle_lock:
            try:
                decibel = await self._read_decibel()
                sample = await asyncio.to_thread(self.store.append_sample, decibel, self._clock())
                await asyncio.to_thread(recompute_day, self.store, sample.day, self.config)
            except asyncio.CancelledError:
                await self._release_session()
                raise
        self._publish(sample)
        return sample

    async def _guarded_cycle(self, trigger: str) -> Sample | None:
        try:
            return await self.run_cycle()
        except Exception as e:
            self._log_cycle_failure(trigger, e)
            return None

    def _log_cycle_failure(self, trigger: str, error: BaseException) -> None:
        if isinstance(error, QuietScoreError):
            logger.warning("%s cycle failed: %s", trigger, error)
        else:
            logger.error("Unexpected error in %s cycle", trigger, exc_info=error)

    def _publish(self, sample: Sample) -> None:
        self._latest_sample = sample
        for listener in list(self._listeners):
            try:
                listener(sample)
            except Exception:
                logger.exception("Sample listener %r failed", listener)

    async def _read_decibel(self) -> float:
        session = await self._ensure_session()
        try:
            power = await self.capture.read_power(session)
        except CaptureUnavailable:
            raise
        except Exception as e:
            raise CaptureUnavailable(f"reading failed: {e}") from e
        decibel = normalize_power(power)
        logger.debug("Read %.1f dBFS -> %.1f dB", power, decibel)
        return decibel

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _start_timer(self) -> None:
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.ensure_future(self._tick())

    async def _tick(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.sample_interval_seconds
        next_fire = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            await self._guarded_cycle("timer")
            next_fire += interval
            behind = loop.time() - next_fire
            if behind >= 0:
                missed = int(behind // interval) + 1
                next_fire += missed * interval
                logger.debug("Cycle overran; coalesced %d tick(s)", missed)

    async def _cancel_work(self, include_background: bool) -> None:
        tasks = []
        if self._timer_task is not None:
            tasks.append(self._timer_task)
            self._timer_task = None
        if include_background:
            tasks.extend(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Shared resources
    # ------------------------------------------------------------------

    async def _ensure_session(self) -> Any:
        async with self._session_lock:
            if self._session is None:
                try:
                    self._session = await self.capture.open()
                except CaptureUnavailable:
                    raise
                except Exception as e:
                    raise CaptureUnavailable(f"cannot open capture session: {e}") from e
                logger.debug("Capture session opened")
            return self._session

    async def _release_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await self.capture.close(session)
        except Exception:
            logger.warning("Failed to close capture session", exc_info=True)
        else:
            logger.debug("Capture session released")

    async def _request_permission(self) -> bool:
        # one outstanding request; concurrent callers share its answer
        if self._permission_request is None:
            request = asyncio.ensure_future(self._ask_permission())
            self._permission_request = request
            request.add_done_callback(self._clear_permission_request)
        return await asyncio.shield(self._permission_request)

    def _clear_permission_request(self, request: asyncio.Future) -> None:
        if self._permission_request is request:
            self._permission_request = None

    async def _ask_permission(self) -> bool:
        try:
            return bool(await self.permissions.request_permission())
        except PermissionDenied:
            return False
        except Exception:
            logger.warning("Permission request failed; treating as denied", exc_info=True)
            return False

    def _request_refresh(self) -> None:
        if self._refresh_pending:
            logger.debug("Background refresh already pending")
            return
        not_before = self._clock() + timedelta(seconds=self.config.sample_interval_seconds)
        try:
            self.refresh.request_opportunity(not_before)
        except Exception:
            logger.warning("Failed to schedule background refresh", exc_info=True)
            return
        self._refresh_pending = True
