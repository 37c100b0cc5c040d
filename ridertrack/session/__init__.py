"""Location sharing session - lifecycle and reporting policy."""

from .controller import REPORT_PERIOD_MS, SAMPLING_OPTIONS, SessionController

__all__ = [
    "REPORT_PERIOD_MS",
    "SAMPLING_OPTIONS",
    "SessionController",
]
