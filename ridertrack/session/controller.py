"""
Location sharing session controller.

Owns the start/stop lifecycle, wires the position source and reporting clock
to the reporter, and classifies position errors. Every callback runs on the
event loop thread; start, stop and teardown reaping are serialised by one lock.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol

from ..core.errors import PositionError, classify_position_error, session_error
from ..core.events import EventBus, EventType
from ..core.handles import WatchHandle
from ..domain.models import (
    ErrorKind,
    PositionReading,
    SessionError,
    SessionSnapshot,
    SessionState,
)
from ..infrastructure.backend.reporter import ReportOutcome
from ..infrastructure.clock import ReportingClock
from ..infrastructure.position.base import PositionSource, SamplingOptions

logger = logging.getLogger(__name__)

# Fixed sampling and reporting policy
SAMPLING_OPTIONS = SamplingOptions(high_accuracy=True, timeout_ms=10_000, max_cached_age_ms=0)
REPORT_PERIOD_MS = 10_000


class LocationReporter(Protocol):
    async def report(self, reading: PositionReading) -> ReportOutcome:
        ...


class SessionController:
    """
    State machine for one rider's location sharing.

    Readings are reported as they arrive; the clock re-sends the last reading
    so the backend hears from a stationary device at least every period.

    Usage:
        controller = SessionController(source, ReportingClock(), reporter)
        await controller.start()
        ...
        await controller.stop()
    """

    def __init__(
        self,
        source: PositionSource,
        clock: ReportingClock,
        reporter: LocationReporter,
        bus: EventBus | None = None,
    ) -> None:
        self._source = source
        self._clock = clock
        self._reporter = reporter
        self._bus = bus

        self._state = SessionState.IDLE
        self._last_reading: PositionReading | None = None
        self._last_error: SessionError | None = None
        self._last_sent_at: datetime | None = None

        self._watch: WatchHandle | None = None
        self._ticker: WatchHandle | None = None
        self._sends: set[asyncio.Task] = set()
        self._closing: list[tuple[Callable[[WatchHandle], Awaitable[None]], WatchHandle]] = []
        self._cancelled_sends: list[asyncio.Task] = []
        self._generation = 0
        self._lifecycle = asyncio.Lock()

    # ==================== Observation ====================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_sharing(self) -> bool:
        return self._state is SessionState.SHARING

    @property
    def current_reading(self) -> PositionReading | None:
        return self._last_reading

    @property
    def current_accuracy(self) -> float | None:
        return self._last_reading.accuracy_meters if self._last_reading else None

    @property
    def last_error(self) -> SessionError | None:
        return self._last_error

    @property
    def last_sent_at(self) -> datetime | None:
        return self._last_sent_at

    def snapshot(self) -> SessionSnapshot:
        """Immutable copy of the observable state."""
        return SessionSnapshot(
            state=self._state,
            current_reading=self._last_reading,
            last_error=self._last_error,
            last_sent_at=self._last_sent_at,
        )

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        """Start sharing. No-op while already sharing."""
        async with self._lifecycle:
            if self._state is SessionState.SHARING:
                return

            # Handles left by a fatal error are released first
            await self._reap()

            if not self._source.supported:
                logger.error("Position sampling is not supported by %s source", self._source.name)
                self._state = SessionState.IDLE
                self._last_error = session_error(ErrorKind.UNSUPPORTED)
                self._publish(EventType.SESSION_ERROR, self._last_error)
                return

            logger.info("Starting location sharing...")
            self._generation += 1
            self._state = SessionState.SHARING
            self._last_error = None
            self._last_reading = None
            self._last_sent_at = None

            self._watch = self._source.activate(
                SAMPLING_OPTIONS, self.on_position_success, self.on_position_error
            )
            self._ticker = self._clock.activate(REPORT_PERIOD_MS, self.on_clock_tick)
            self._publish(EventType.SHARING_STARTED)

    async def stop(self) -> None:
        """
        Stop sharing and clear all session state.

        Idempotent; waits for a start() in progress, then returns once the
        watch, the clock and any in-flight report have finished.
        """
        async with self._lifecycle:
            self._teardown()
            self._last_error = None
            await self._reap()

    async def drain(self) -> None:
        """Wait for in-flight reports and any pending teardown."""
        if self._sends:
            await asyncio.gather(*list(self._sends), return_exceptions=True)
        async with self._lifecycle:
            await self._reap()

    def _teardown(self) -> None:
        """Synchronously silence every callback and reset to IDLE."""
        was_sharing = self._state is SessionState.SHARING
        if was_sharing:
            logger.info("Stopping location sharing...")

        self._generation += 1
        if self._watch is not None:
            self._watch.cancel()
            self._closing.append((self._source.deactivate, self._watch))
            self._watch = None
        if self._ticker is not None:
            self._ticker.cancel()
            self._closing.append((self._clock.deactivate, self._ticker))
            self._ticker = None
        for task in self._sends:
            task.cancel()
            self._cancelled_sends.append(task)
        self._sends.clear()

        self._state = SessionState.IDLE
        self._last_reading = None
        self._last_sent_at = None

        if was_sharing:
            self._publish(EventType.SHARING_STOPPED)

    async def _reap(self) -> None:
        while self._closing:
            deactivate, handle = self._closing.pop(0)
            await deactivate(handle)
        if self._cancelled_sends:
            tasks, self._cancelled_sends = self._cancelled_sends, []
            await asyncio.gather(*tasks, return_exceptions=True)

    # ==================== Position events ====================

    def on_position_success(self, reading: PositionReading) -> None:
        if self._state is not SessionState.SHARING:
            logger.debug("Ignoring reading while %s", self._state.value)
            return

        self._last_reading = reading
        self._last_error = None
        self._publish(EventType.POSITION_UPDATE, reading)
        self._dispatch_report(reading)

    def on_position_error(self, err: PositionError) -> None:
        if self._state is not SessionState.SHARING:
            logger.debug("Ignoring position error while %s: %r", self._state.value, err)
            return

        kind, fatal = classify_position_error(err)
        error = session_error(kind)
        self._publish(EventType.POSITION_ERROR, error)

        if fatal:
            logger.error("Geolocation error (%s), stopping: %s", kind.value, err)
            self._teardown()
            self._state = SessionState.ERROR
            self._last_error = error
            self._publish(EventType.SESSION_ERROR, error)
        else:
            logger.warning("Geolocation error (%s): %s", kind.value, err)
            self._last_error = error

    def on_clock_tick(self) -> None:
        if self._state is not SessionState.SHARING:
            return
        if self._last_reading is None:
            logger.debug("Clock tick before first reading, nothing to send")
            return
        self._dispatch_report(self._last_reading)

    # ==================== Reporting ====================

    def on_report_outcome(self, ok: bool, timestamp: datetime, reason: str | None = None) -> None:
        if self._state is not SessionState.SHARING:
            return

        if ok:
            self._last_sent_at = timestamp
            self._publish(EventType.REPORT_SENT, timestamp)
        else:
            logger.warning("Location report failed: %s", reason or "unknown reason")
            self._last_error = session_error(ErrorKind.NETWORK_SEND_FAILED)
            self._publish(EventType.REPORT_FAILED, reason)

    def _dispatch_report(self, reading: PositionReading) -> None:
        task = asyncio.get_running_loop().create_task(self._send(reading, self._generation))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _send(self, reading: PositionReading, generation: int) -> None:
        try:
            outcome = await self._reporter.report(reading)
        except Exception as e:
            logger.error("Error updating location: %s", e)
            outcome = ReportOutcome.failure(str(e))

        if generation != self._generation:
            return
        self.on_report_outcome(outcome.ok, outcome.completed_at, outcome.reason)

    def _publish(self, event_type: EventType, data: Any = None) -> None:
        if self._bus is not None:
            self._bus.publish(event_type, data=data)
