"""Journey tracking engine - normalizer, distance, route, timer, state machine."""

from .distance import Increment, accumulate, haversine_km
from .engine import JourneyEngine, parse_transport_mode
from .errors import (
    IllegalTransition,
    InvalidSample,
    InvalidTransportMode,
    JourneyError,
    OperationResult,
    PositioningUnavailable,
)
from .normalizer import normalize
from .route import RouteBuffer
from .session import JourneySession, Subscription
from .timer import ElapsedTimeTracker, format_elapsed

__all__ = [
    "ElapsedTimeTracker",
    "IllegalTransition",
    "Increment",
    "InvalidSample",
    "InvalidTransportMode",
    "JourneyEngine",
    "JourneyError",
    "JourneySession",
    "OperationResult",
    "PositioningUnavailable",
    "RouteBuffer",
    "Subscription",
    "accumulate",
    "format_elapsed",
    "haversine_km",
    "normalize",
    "parse_transport_mode",
]
