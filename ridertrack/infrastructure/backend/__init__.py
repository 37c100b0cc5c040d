"""
Rider backend integration.
~~~~~~~~~~~~~~~~~~~~~~~~~~

Pushes location updates to the rider backend over HTTP.
"""

from ridertrack.infrastructure.backend.reporter import (
    NETWORK_ERROR,
    NO_CREDENTIAL,
    REMOTE_REJECTED,
    BackendSettings,
    ReportOutcome,
    Reporter,
    build_payload,
)

__all__ = [
    "BackendSettings",
    "NETWORK_ERROR",
    "NO_CREDENTIAL",
    "REMOTE_REJECTED",
    "ReportOutcome",
    "Reporter",
    "build_payload",
]
