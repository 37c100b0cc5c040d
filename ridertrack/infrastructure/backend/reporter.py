"""
Location Reporter.
~~~~~~~~~~~~~~~~~~

HTTP client that pushes position readings to the rider backend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp

from ...domain.models import PositionReading
from ..credentials import CredentialProvider

logger = logging.getLogger(__name__)

NO_CREDENTIAL = "no credential available"
REMOTE_REJECTED = "remote rejected"
NETWORK_ERROR = "network error"


@dataclass
class BackendSettings:
    """Backend connection settings."""

    base_url: str = "http://localhost:8000"
    rider_id: str = ""
    location_path: str = "/riders/{rider_id}/location"
    timeout: float = 10.0

    @property
    def location_url(self) -> str:
        return self.base_url.rstrip("/") + self.location_path.format(rider_id=self.rider_id)


@dataclass
class ReportOutcome:
    """Result of a single send."""

    ok: bool
    reason: str | None = None
    status: int | None = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def success(cls, status: int) -> ReportOutcome:
        return cls(ok=True, status=status)

    @classmethod
    def failure(cls, reason: str, status: int | None = None) -> ReportOutcome:
        return cls(ok=False, reason=reason, status=status)


def build_payload(reading: PositionReading, sent_at: datetime | None = None) -> dict[str, Any]:
    """JSON body for the location update."""
    sent_at = sent_at or datetime.now(UTC)
    return {
        "lat": reading.latitude,
        "lng": reading.longitude,
        "accuracy": reading.accuracy_meters,
        "heading": reading.heading_degrees,
        "speed": reading.speed_mps,
        "timestamp": sent_at.isoformat().replace("+00:00", "Z"),
    }


class Reporter:
    """
    Sends location updates to the backend.

    One attempt per call; the next position event or clock tick is the retry.

    Example:
        >>> async with Reporter(BackendSettings(
        ...     base_url="https://api.example.com",
        ...     rider_id="r-42",
        ... ), credentials) as reporter:
        ...     outcome = await reporter.report(reading)
    """

    def __init__(
        self,
        settings: BackendSettings,
        credentials: CredentialProvider,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self._session = session
        self._owns_session = session is None
        self.sent_total = 0
        self.failed_total = 0

    # ==================== Connection ====================

    async def connect(self) -> aiohttp.ClientSession:
        """Open the HTTP session if it is not open yet, and return it."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this reporter opened it."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    # ==================== Sending ====================

    async def report(self, reading: PositionReading) -> ReportOutcome:
        """Send a reading using whatever credential is current right now."""
        return await self.send(reading, self.credentials.get_token())

    async def send(self, reading: PositionReading, credential: str | None) -> ReportOutcome:
        """
        Send one location update.

        Args:
            reading: Position to report
            credential: Bearer token, or None when the rider is not signed in

        Returns:
            ReportOutcome - never raises for network or HTTP failures
        """
        if not credential:
            logger.error("No rider token found, location not sent")
            return self._failed(ReportOutcome.failure(NO_CREDENTIAL))

        session = await self.connect()

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credential}",
        }
        try:
            async with session.put(
                self.settings.location_url,
                json=build_payload(reading),
                headers=headers,
            ) as resp:
                if 200 <= resp.status < 300:
                    self.sent_total += 1
                    logger.info("Location sent: %.6f, %.6f", reading.latitude, reading.longitude)
                    return ReportOutcome.success(resp.status)
                text = await resp.text()
                logger.error("Failed to update location: %s - %s", resp.status, text[:200])
                return self._failed(ReportOutcome.failure(REMOTE_REJECTED, resp.status))

        except TimeoutError:
            logger.warning("Location update timed out after %.1fs", self.settings.timeout)
        except aiohttp.ClientError as e:
            logger.warning("Error updating location: %s", e)

        return self._failed(ReportOutcome.failure(NETWORK_ERROR))

    def _failed(self, outcome: ReportOutcome) -> ReportOutcome:
        self.failed_total += 1
        return outcome

    # ==================== Context Manager ====================

    async def __aenter__(self) -> Reporter:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
