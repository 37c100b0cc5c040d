"""
Session event bus.

The session controller publishes from synchronous callbacks with
``publish``; a single worker task delivers events to async subscribers in
priority order, so a slow or failing display never stalls sampling.

Usage:
    bus = EventBus()
    bus.subscribe(EventType.REPORT_SENT, show_sent)
    await bus.start()
    ...
    await bus.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Coroutine, TypeAlias

logger = logging.getLogger(__name__)

AsyncHandler: TypeAlias = Callable[["Event"], Coroutine[Any, Any, None]]


class EventType(Enum):
    """Observable session events."""

    # Session lifecycle
    SHARING_STARTED = auto()
    SHARING_STOPPED = auto()
    SESSION_ERROR = auto()

    # Position
    POSITION_UPDATE = auto()
    POSITION_ERROR = auto()

    # Reporting
    REPORT_SENT = auto()
    REPORT_FAILED = auto()


@dataclass(frozen=True)
class Event:
    type: EventType
    data: Any = None
    source: str = "session"
    timestamp: float = field(default_factory=time.time)


class EventBus:
    """Queue-backed pub/sub with priority ordering and handler isolation."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[tuple[int, AsyncHandler]]] = {}
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    def subscribe(self, event_type: EventType, handler: AsyncHandler, priority: int = 100) -> None:
        """Register handler for event_type; lower priority runs first."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append((priority, handler))
        handlers.sort(key=lambda entry: entry[0])
        logger.debug("Subscribed to %s: %s", event_type.name, getattr(handler, "__name__", handler))

    def subscribe_all(self, handler: AsyncHandler, priority: int = 100) -> None:
        for event_type in EventType:
            self.subscribe(event_type, handler, priority)

    def publish(self, event_type: EventType, data: Any = None, source: str = "session") -> Event:
        """Queue an event. Safe to call from sync callbacks; never blocks."""
        event = Event(type=event_type, data=data, source=source)
        self._queue.put_nowait(event)
        return event

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._process_loop())
        logger.info("Event bus started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Deliver what is queued (up to timeout), then stop the worker."""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Event queue drain timeout, %d events dropped", self._queue.qsize())
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Event bus stopped")

    async def _process_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        for _, handler in list(self._handlers.get(event.type, ())):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for %s: %s - %s",
                    event.type.name,
                    getattr(handler, "__name__", handler),
                    e,
                )
