"""Position source backed by a gpsd daemon."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Callable

from ...core.errors import PositionError, PositionErrorCode
from ...core.handles import WatchHandle
from .base import ErrorCallback, PositionSource, SamplingOptions, SuccessCallback
from .gpsd_client import GpsdClient, GpsdConfig

logger = logging.getLogger(__name__)


class GpsdPositionSource(PositionSource):
    """
    Watches gpsd and turns its reports into readings and position errors.

    Error mapping:
    - socket access refused -> PERMISSION_DENIED
    - daemon unreachable, connection lost, or fix lost -> POSITION_UNAVAILABLE
      (once per outage)
    - no accepted reading within ``options.timeout`` -> TIMEOUT
    - anything else -> an unrecognised code, classified as unknown
    """

    name = "gpsd"

    def __init__(
        self,
        config: GpsdConfig | None = None,
        enabled: bool = True,
        client_factory: Callable[[GpsdConfig], GpsdClient] = GpsdClient,
    ) -> None:
        self.config = config or GpsdConfig()
        self.enabled = enabled
        self._client_factory = client_factory

    @property
    def supported(self) -> bool:
        return self.enabled

    async def _watch(
        self,
        handle: WatchHandle,
        options: SamplingOptions,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
    ) -> None:
        client = self._client_factory(self.config)
        loop = asyncio.get_running_loop()
        oldest_allowed = datetime.now(UTC) - timedelta(seconds=options.max_cached_age)
        deadline = loop.time() + options.timeout
        unavailable = False

        def unavailable_once(message: str) -> None:
            nonlocal unavailable
            if not unavailable:
                unavailable = True
                handle.deliver(
                    on_error, PositionError(PositionErrorCode.POSITION_UNAVAILABLE, message)
                )

        try:
            while handle.active:
                if not client.is_connected:
                    try:
                        await client.connect()
                    except PermissionError as e:
                        logger.warning("gpsd socket permission denied: %s", e)
                        handle.deliver(
                            on_error,
                            PositionError(PositionErrorCode.PERMISSION_DENIED, str(e)),
                        )
                        await self._pause(handle)
                        continue
                    except (OSError, asyncio.TimeoutError) as e:
                        logger.warning("gpsd unreachable at %s: %s", client.endpoint, e)
                        unavailable_once(f"gpsd unreachable: {e}")
                        await self._pause(handle)
                        continue
                    deadline = loop.time() + options.timeout

                try:
                    data = await client.read_report(timeout=max(0.0, deadline - loop.time()))
                except asyncio.TimeoutError:
                    logger.debug("No position within %.1fs", options.timeout)
                    handle.deliver(
                        on_error,
                        PositionError(PositionErrorCode.TIMEOUT, "position acquisition timed out"),
                    )
                    deadline = loop.time() + options.timeout
                    continue
                except (ConnectionError, OSError) as e:
                    logger.warning("GPS stream error: %s, reconnecting...", e)
                    unavailable_once(str(e))
                    await client.disconnect()
                    await self._pause(handle)
                    continue
                except Exception as e:
                    logger.error("Unexpected gpsd error: %s", e)
                    handle.deliver(on_error, PositionError(0, str(e)))
                    await client.disconnect()
                    await self._pause(handle)
                    continue

                if data is None or data.get("class") != "TPV":
                    continue

                mode, reading = client.parse_tpv(data)
                if reading is None or (options.high_accuracy and mode < 2):
                    unavailable_once("no position fix")
                    continue
                if reading.captured_at < oldest_allowed:
                    logger.debug("Discarding cached fix from %s", reading.captured_at.isoformat())
                    continue

                unavailable = False
                deadline = loop.time() + options.timeout
                handle.deliver(on_success, reading)
        finally:
            await client.disconnect()

    async def _pause(self, handle: WatchHandle) -> None:
        if handle.active:
            await asyncio.sleep(self.config.reconnect_delay)
