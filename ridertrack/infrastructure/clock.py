"""Fixed-period reporting clock."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..core.handles import WatchHandle

logger = logging.getLogger(__name__)


class ReportingClock:
    """
    Fires ``on_tick`` every ``period_ms`` until deactivated.

    Ticks are independent of position activity; the first tick fires one
    full period after activation.
    """

    name = "clock"

    def activate(self, period_ms: int, on_tick: Callable[[], None]) -> WatchHandle:
        if period_ms <= 0:
            raise ValueError(f"period_ms must be positive, got {period_ms}")
        handle = WatchHandle(name="reporting-clock")
        handle.task = asyncio.create_task(self._run(handle, period_ms / 1000.0, on_tick))
        logger.info("Reporting clock started (every %dms)", period_ms)
        return handle

    async def deactivate(self, handle: WatchHandle | None) -> None:
        if handle is None:
            return
        handle.cancel()
        await handle.wait_closed()
        logger.info("Reporting clock stopped")

    async def _run(self, handle: WatchHandle, period: float, on_tick: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + period
        while handle.active:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            handle.deliver(on_tick)
            next_at += period
