"""Position source contract shared by gpsd and simulated sources."""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from ...core.errors import PositionError
from ...core.handles import WatchHandle
from ...domain.models import PositionReading

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[PositionReading], None]
ErrorCallback = Callable[[PositionError], None]


@dataclass(frozen=True)
class SamplingOptions:
    """Options requested when a watch is activated."""

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_cached_age_ms: int = 0

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def max_cached_age(self) -> float:
        return self.max_cached_age_ms / 1000.0


class PositionSource(abc.ABC):
    """
    Continuous position sampling with a cancellable watch.

    ``activate`` starts a background watch and returns its handle; readings
    and errors are delivered through the callbacks until ``deactivate``.
    """

    name = "position"

    @property
    def supported(self) -> bool:
        """Whether the device can sample positions at all."""
        return True

    def activate(
        self,
        options: SamplingOptions,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
    ) -> WatchHandle:
        handle = WatchHandle(name=f"{self.name}-watch")
        handle.task = asyncio.create_task(self._watch(handle, options, on_success, on_error))
        logger.info(
            "%s watch started (high_accuracy=%s, timeout=%dms, max_age=%dms)",
            self.name,
            options.high_accuracy,
            options.timeout_ms,
            options.max_cached_age_ms,
        )
        return handle

    async def deactivate(self, handle: WatchHandle | None) -> None:
        """Cancel the watch and wait for it; no callbacks fire afterwards."""
        if handle is None:
            return
        handle.cancel()
        await handle.wait_closed()
        logger.info("%s watch stopped", self.name)

    @abc.abstractmethod
    async def _watch(
        self,
        handle: WatchHandle,
        options: SamplingOptions,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Run until the handle is cancelled."""
