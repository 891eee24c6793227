"""Database infrastructure - SQLite for journey data."""

from .async_repository import AsyncJourneyRepository
from .persistence import JourneyPersistenceHandler
from .schema import JOURNEY_SCHEMA

__all__ = [
    "JOURNEY_SCHEMA",
    "AsyncJourneyRepository",
    "JourneyPersistenceHandler",
]
