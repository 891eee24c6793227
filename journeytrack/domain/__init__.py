"""journeytrack Domain Layer - Core models and enums."""

from .models import (
    GeoSample,
    JourneyRecord,
    JourneySnapshot,
    JourneyStatus,
    PositioningError,
    RawPosition,
    StoredJourney,
    TransportMode,
    UserProfile,
)

__all__ = [
    "GeoSample",
    "JourneyRecord",
    "JourneySnapshot",
    "JourneyStatus",
    "PositioningError",
    "RawPosition",
    "StoredJourney",
    "TransportMode",
    "UserProfile",
]
