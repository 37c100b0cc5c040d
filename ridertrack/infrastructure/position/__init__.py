"""Position sources - gpsd watch and simulated walk."""

from .base import PositionSource, SamplingOptions
from .gpsd_client import GpsdClient, GpsdConfig
from .gpsd_source import GpsdPositionSource
from .simulated import SimulatedPositionSource

__all__ = [
    "GpsdClient",
    "GpsdConfig",
    "GpsdPositionSource",
    "PositionSource",
    "SamplingOptions",
    "SimulatedPositionSource",
]
