"""ridertrack Domain Layer - Readings, session state and error kinds."""

from .models import ErrorKind, PositionReading, SessionError, SessionSnapshot, SessionState

__all__ = [
    "ErrorKind",
    "PositionReading",
    "SessionError",
    "SessionSnapshot",
    "SessionState",
]
