"""journeytrack Domain Models - Pydantic models for core entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

Coordinate = tuple[float, float]
Route = tuple[Coordinate, ...]


class TransportMode(str, Enum):
    """How the user is travelling."""

    WALKING = "walking"
    RUNNING = "running"
    CYCLING = "cycling"
    DRIVING = "driving"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class JourneyStatus(str, Enum):
    """Journey lifecycle states."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    FINISHED = "finished"


@dataclass
class RawPosition:
    """Raw event from a positioning source.

    Nothing is validated here; any field may be missing, None or garbage.
    Speed is in whatever unit the source reports (m/s for gpsd and browsers).
    """

    latitude: Any = None
    longitude: Any = None
    speed: Any = None
    timestamp: Any = None


@dataclass
class PositioningError:
    """Message on the positioning source error channel."""

    message: str


class GeoSample(BaseModel):
    """A validated position observation."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed_kmh: float = Field(0.0, ge=0)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def coordinate(self) -> Coordinate:
        return (self.latitude, self.longitude)


class JourneySnapshot(BaseModel):
    """Read-only view of the live journey for rendering."""

    model_config = ConfigDict(frozen=True)

    status: JourneyStatus
    transport_mode: TransportMode | None = None
    started_at: datetime | None = None
    route: Route = ()
    distance_km: float = 0.0
    elapsed_seconds: int = 0
    elapsed_formatted: str = "00:00:00"
    last_sample: GeoSample | None = None

    @property
    def current_speed_kmh(self) -> float:
        return self.last_sample.speed_kmh if self.last_sample else 0.0


class JourneyRecord(BaseModel):
    """Immutable result of a completed journey, handed to persistence."""

    model_config = ConfigDict(frozen=True)

    transport_mode: TransportMode
    distance_km: float = Field(..., ge=0)
    elapsed_seconds: int = Field(..., ge=0)
    elapsed_formatted: str
    started_at: datetime
    completed_at: datetime
    route: Route = ()

    @property
    def point_count(self) -> int:
        return len(self.route)

    @property
    def average_speed_kmh(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.distance_km / (self.elapsed_seconds / 3600.0)


class StoredJourney(BaseModel):
    """A journey record as persisted for one user."""

    id: int
    user_id: str
    record: JourneyRecord


class UserProfile(BaseModel):
    user_id: str
    email: str | None = None
    name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
