"""Simulated position source for demos and dry runs."""

from __future__ import annotations

import asyncio
import logging
import math

from ...core.handles import WatchHandle
from ...domain.models import PositionReading
from .base import ErrorCallback, PositionSource, SamplingOptions, SuccessCallback

logger = logging.getLogger(__name__)


class SimulatedPositionSource(PositionSource):
    """
    Generates fake positions walking in a circle.

    Never reports errors; accuracy is tighter when high accuracy is requested.
    """

    name = "simulated"

    def __init__(
        self,
        start_lat: float = 41.0082,  # Istanbul
        start_lon: float = 28.9784,
        speed_mps: float = 1.0,
        interval: float = 1.0,
    ) -> None:
        self._start_lat = start_lat
        self._start_lon = start_lon
        self._speed = speed_mps
        self._interval = interval
        self._step = 0

    def reading_at(self, step: int, high_accuracy: bool = True) -> PositionReading:
        """Position for a given step of the walk."""
        angle = math.radians(step * 5)
        radius = 0.001  # ~111 meters

        return PositionReading(
            latitude=self._start_lat + radius * math.sin(angle),
            longitude=self._start_lon + radius * math.cos(angle),
            accuracy_meters=5.0 if high_accuracy else 25.0,
            heading_degrees=float(step * 5 % 360),
            speed_mps=self._speed,
        )

    async def _watch(
        self,
        handle: WatchHandle,
        options: SamplingOptions,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
    ) -> None:
        logger.info("Simulated GPS active around %.4f, %.4f", self._start_lat, self._start_lon)
        while handle.active:
            handle.deliver(on_success, self.reading_at(self._step, options.high_accuracy))
            self._step += 1
            await asyncio.sleep(self._interval)
