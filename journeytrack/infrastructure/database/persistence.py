"""Stores finished journeys delivered over the event bus."""

from __future__ import annotations

import logging

import aiosqlite

from ...core.events import Event, EventBus, EventType
from ...core.identity import IdentityProvider
from ...domain.models import JourneyRecord
from .async_repository import AsyncJourneyRepository

logger = logging.getLogger(__name__)


class JourneyPersistenceHandler:
    """
    Saves each JOURNEY_FINISHED record for the current user.

    Outcomes are published as JOURNEY_SAVED / PERSISTENCE_FAILED. There is
    no retry here; the finished journey in the engine is unaffected either way.
    """

    def __init__(
        self,
        repository: AsyncJourneyRepository,
        identity: IdentityProvider,
        bus: EventBus,
    ) -> None:
        self.repository = repository
        self.identity = identity
        self.bus = bus
        self.saved_ids: list[int] = []

    def attach(self) -> None:
        self.bus.subscribe(EventType.JOURNEY_FINISHED, self.handle_finished, priority=10)

    def detach(self) -> None:
        self.bus.unsubscribe(EventType.JOURNEY_FINISHED, self.handle_finished)

    async def handle_finished(self, event: Event) -> None:
        record: JourneyRecord = event.data
        user_id = self.identity.current_user_id()
        if not user_id:
            logger.warning("No user identity - journey not saved")
            await self.bus.emit(EventType.PERSISTENCE_FAILED, data="no user identity", source="persistence")
            return

        try:
            journey_id = await self.repository.save_journey(user_id, record)
        except (aiosqlite.Error, OSError) as e:
            logger.error("Failed to save journey for %s: %s", user_id, e)
            await self.bus.emit(EventType.PERSISTENCE_FAILED, data=str(e), source="persistence")
            return

        self.saved_ids.append(journey_id)
        await self.bus.emit(
            EventType.JOURNEY_SAVED,
            data={"id": journey_id, "user_id": user_id},
            source="persistence",
        )
