"""Cancellable handles for background watches and timers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class WatchHandle:
    """
    Opaque handle returned by ``activate()`` on sources and clocks.

    ``cancel()`` is synchronous: once it returns, :meth:`deliver` drops every
    callback. ``wait_closed()`` waits for the backing task to finish.
    """

    name: str
    task: asyncio.Task | None = None
    active: bool = True

    def deliver(self, callback: Callable[[Any], None], *args: Any) -> bool:
        """Invoke callback only while the handle is active. Returns True if delivered."""
        if not self.active:
            logger.debug("%s: dropped callback after deactivate", self.name)
            return False
        try:
            callback(*args)
        except Exception as e:
            logger.error("%s: callback error: %s", self.name, e)
        return True

    def cancel(self) -> None:
        """Flag inactive and cancel the backing task."""
        self.active = False
        task = self.task
        if task is None or task.done():
            return
        # A callback may tear down the watch that is delivering it; that task
        # exits on its own once it sees the flag.
        if task is not asyncio.current_task():
            task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the backing task has finished."""
        task = self.task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.gather(task, return_exceptions=True)

    @property
    def closed(self) -> bool:
        return not self.active and (self.task is None or self.task.done())
