"""Async gpsd client speaking the gpsd JSON watch protocol."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Optional

from ...domain.models import PositionReading

logger = logging.getLogger(__name__)

# Assumed horizontal error when gpsd reports neither eph nor hdop
DEFAULT_ACCURACY_METERS = 50.0


@dataclass
class GpsdConfig:
    """GPS daemon connection configuration."""

    host: str = "localhost"
    port: int = 2947
    socket_path: str | None = None  # unix socket, e.g. /var/run/gpsd.sock
    connect_timeout: float = 5.0
    reconnect_delay: float = 5.0


@dataclass
class GpsdState:
    """Internal client state tracking."""

    connected: bool = False
    hdop: float | None = None


class GpsdClient:
    """
    Minimal gpsd client.

    ``connect()`` raises on failure so callers can tell a refused or missing
    daemon apart from a permission problem on the socket.
    """

    def __init__(self, config: GpsdConfig | None = None) -> None:
        self.config = config or GpsdConfig()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._state = GpsdState()

    @property
    def is_connected(self) -> bool:
        """Check if connected to gpsd."""
        return self._state.connected

    @property
    def endpoint(self) -> str:
        if self.config.socket_path:
            return self.config.socket_path
        return f"{self.config.host}:{self.config.port}"

    async def connect(self) -> None:
        """
        Connect to gpsd and enable JSON streaming.

        Raises:
            PermissionError: socket exists but access is refused
            OSError: daemon unreachable or refused the connection
            asyncio.TimeoutError: connect did not complete in time
        """
        try:
            if self.config.socket_path:
                opener = asyncio.open_unix_connection(self.config.socket_path)
            else:
                opener = asyncio.open_connection(self.config.host, self.config.port)
            self._reader, self._writer = await asyncio.wait_for(
                opener, timeout=self.config.connect_timeout
            )

            self._writer.write(b'?WATCH={"enable":true,"json":true}\n')
            await self._writer.drain()
        except Exception:
            self._reader = None
            self._writer = None
            raise

        self._state.connected = True
        logger.info("Connected to gpsd at %s", self.endpoint)

    async def disconnect(self) -> None:
        """Disconnect from gpsd gracefully."""
        writer = self._writer
        self._reader = None
        self._writer = None
        self._state.connected = False
        if writer is None:
            return
        try:
            writer.write(b'?WATCH={"enable":false}\n')
            await writer.drain()
            writer.close()
            await writer.wait_closed()
        except (OSError, RuntimeError) as e:
            logger.debug("gpsd disconnect: %s", e)

    async def read_report(self, timeout: float) -> dict[str, Any] | None:
        """
        Read one JSON report.

        Returns:
            The decoded report, or None for a line that is not valid JSON.

        Raises:
            asyncio.TimeoutError: nothing arrived within ``timeout``
            ConnectionError: the daemon closed the connection
        """
        if self._reader is None:
            raise ConnectionError("not connected to gpsd")

        line = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        if not line:
            raise ConnectionError("GPS connection closed by server")

        try:
            data = json.loads(line.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("GPS JSON parse error: %s", e)
            return None

        if not isinstance(data, dict):
            return None
        if data.get("class") == "SKY":
            self._update_sky(data)
        return data

    def _update_sky(self, data: dict[str, Any]) -> None:
        if data.get("hdop") is not None:
            self._state.hdop = float(data["hdop"])

    def parse_tpv(self, data: dict[str, Any]) -> tuple[int, Optional[PositionReading]]:
        """
        Parse a TPV (Time-Position-Velocity) report.

        Args:
            data: JSON dict from gpsd TPV message

        Returns:
            (mode, reading) - mode is 0=unknown, 1=no fix, 2=2D, 3=3D; reading
            is None when the report carries no usable coordinates.
        """
        mode = int(data.get("mode", 0) or 0)
        if "lat" not in data or "lon" not in data:
            return mode, None

        try:
            reading = PositionReading(
                latitude=float(data["lat"]),
                longitude=float(data["lon"]),
                accuracy_meters=self._accuracy(data),
                heading_degrees=_optional_float(data.get("track")),
                speed_mps=_optional_float(data.get("speed")),
                captured_at=_parse_time(data.get("time")),
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.error("TPV parse error: %s - data: %s", e, data)
            return mode, None

        return mode, reading

    def _accuracy(self, data: dict[str, Any]) -> float:
        # eph is gpsd's estimated horizontal error in meters
        if data.get("eph") is not None:
            return float(data["eph"])
        if self._state.hdop is not None:
            return self._state.hdop * 5.0  # Rough estimate
        return DEFAULT_ACCURACY_METERS


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _parse_time(value: Any) -> datetime:
    if not value:
        return datetime.now(UTC)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
