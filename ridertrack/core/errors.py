"""
Position error taxonomy and classification.

Device-reported failures arrive as :class:`PositionError` carrying a numeric
code. :func:`classify_position_error` maps them onto an :class:`ErrorKind`
and decides whether the sharing session can keep running.
"""

from __future__ import annotations

from enum import IntEnum

from ..domain.models import ErrorKind, SessionError


class PositionErrorCode(IntEnum):
    """Codes reported by position sources."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


class PositionError(Exception):
    """Failure reported by a position source."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"position error {code}")
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"PositionError(code={self.code!r}, message={self.message!r})"


DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.PERMISSION_DENIED: (
        "Location permission denied. Please enable location access in your device settings."
    ),
    ErrorKind.POSITION_UNAVAILABLE: "Location information is unavailable.",
    ErrorKind.TIMEOUT: "Location request timed out.",
    ErrorKind.UNSUPPORTED: "Geolocation is not supported on this device.",
    ErrorKind.NETWORK_SEND_FAILED: "Failed to send location to server.",
    ErrorKind.UNKNOWN: "An unknown error occurred.",
}

# code -> (kind, fatal)
_CLASSIFICATION: dict[int, tuple[ErrorKind, bool]] = {
    PositionErrorCode.PERMISSION_DENIED: (ErrorKind.PERMISSION_DENIED, True),
    PositionErrorCode.POSITION_UNAVAILABLE: (ErrorKind.POSITION_UNAVAILABLE, False),
    PositionErrorCode.TIMEOUT: (ErrorKind.TIMEOUT, False),
}


def classify_position_error(err: PositionError) -> tuple[ErrorKind, bool]:
    """
    Classify a position error.

    Returns:
        (kind, fatal) - fatal errors end the sharing session.
    """
    return _CLASSIFICATION.get(err.code, (ErrorKind.UNKNOWN, False))


def session_error(kind: ErrorKind, message: str | None = None) -> SessionError:
    """Build a SessionError, falling back to the default message for the kind."""
    return SessionError(kind=kind, message=message or DEFAULT_MESSAGES.get(kind))
