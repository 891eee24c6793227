"""GPS infrastructure - positioning sources."""

from .gpsd_client import AsyncGPSClient, GPSState, MockGPSClient
from .source import PositioningSource, PositionItem, ReplaySource

__all__ = [
    "AsyncGPSClient",
    "GPSState",
    "MockGPSClient",
    "PositionItem",
    "PositioningSource",
    "ReplaySource",
]
