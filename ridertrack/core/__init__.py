"""ridertrack Core - Event bus, error taxonomy and cancellable handles."""

from .errors import (
    DEFAULT_MESSAGES,
    PositionError,
    PositionErrorCode,
    classify_position_error,
    session_error,
)
from .events import Event, EventBus, EventType
from .handles import WatchHandle

__all__ = [
    "DEFAULT_MESSAGES",
    # Events
    "Event",
    "EventBus",
    "EventType",
    # Errors
    "PositionError",
    "PositionErrorCode",
    "WatchHandle",
    "classify_position_error",
    "session_error",
]
