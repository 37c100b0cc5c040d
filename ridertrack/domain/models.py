"""ridertrack Domain Models - Pydantic models for readings and session state."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Sharing session lifecycle states."""

    IDLE = "idle"
    SHARING = "sharing"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Error kinds surfaced to the presentation layer."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    NETWORK_SEND_FAILED = "network_send_failed"
    UNKNOWN = "unknown"


class PositionReading(BaseModel):
    """One sampled device position."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy_meters: float = Field(..., ge=0)
    heading_degrees: float | None = None  # degrees from true north
    speed_mps: float | None = None
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SessionError(BaseModel):
    """Classified error with an optional human-readable message."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str | None = None


class SessionSnapshot(BaseModel):
    """Read-only view of a sharing session for display."""

    state: SessionState = SessionState.IDLE
    current_reading: PositionReading | None = None
    last_error: SessionError | None = None
    last_sent_at: datetime | None = None

    @property
    def is_sharing(self) -> bool:
        return self.state is SessionState.SHARING

    @property
    def current_accuracy(self) -> float | None:
        if self.current_reading is None:
            return None
        return self.current_reading.accuracy_meters
