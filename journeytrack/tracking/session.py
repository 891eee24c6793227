"""
Journey Session
===============

Async glue between the engine and its producers. Entering ``active``
acquires a Subscription (sample pump + ticker); every way out of
``active`` releases it exactly once before touching the engine, so no
sample delivered after end() can reach the journey.

Usage:
    session = JourneySession(JourneyEngine(), MockGPSClient(), bus=bus)

    async with session:
        await session.start("walking")
        await asyncio.sleep(60)
        record = (await session.end()).unwrap()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..core.events import EventBus, EventType
from ..domain.models import JourneyStatus, PositioningError, TransportMode
from ..infrastructure.gps.source import PositioningSource
from .engine import JourneyEngine, parse_transport_mode
from .errors import OperationResult, PositioningUnavailable

logger = logging.getLogger(__name__)


class Subscription:
    """Background tasks tied to one active journey, released exactly once."""

    def __init__(self, source: PositioningSource, tasks: list[asyncio.Task]) -> None:
        self._source = source
        self._tasks = tasks
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._source.stop()
        logger.debug("Journey subscription released")


class JourneySession:
    """Runs one engine against a positioning source and a 1 Hz ticker."""

    def __init__(
        self,
        engine: JourneyEngine,
        source: PositioningSource,
        bus: EventBus | None = None,
        tick_interval: float | None = None,
    ) -> None:
        self.engine = engine
        self.source = source
        self.bus = bus
        self.tick_interval = tick_interval or engine.config.tick_interval_sec
        self.last_error: str | None = None
        self.samples_rejected = 0
        self._subscription: Subscription | None = None

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.released

    async def __aenter__(self) -> JourneySession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._release()

    async def start(self, mode: TransportMode | str | None) -> OperationResult:
        """Probe positioning, start the engine and acquire producers."""
        if parse_transport_mode(mode) is None or self.engine.status != JourneyStatus.NOT_STARTED:
            # Let the engine produce the typed failure without side effects
            return self.engine.select_transport_and_start(mode)

        if not await self.source.connect():
            message = "positioning source unavailable"
            self.last_error = message
            logger.warning("Cannot start journey: %s", message)
            await self._emit(EventType.POSITIONING_UNAVAILABLE, message)
            return OperationResult.failure(PositioningUnavailable(message))

        # another start() may have won while connect() was pending
        result = self.engine.select_transport_and_start(mode)
        if not result.ok:
            if not self.subscribed:
                await self.source.stop()
            return result

        self.last_error = None
        self.samples_rejected = 0
        self._subscription = Subscription(
            self.source,
            [
                asyncio.create_task(self._pump_samples()),
                asyncio.create_task(self._run_ticker()),
            ],
        )
        await self._emit(EventType.JOURNEY_STARTED, result.value)
        return result

    async def end(self) -> OperationResult:
        """Release producers, then finish the journey and publish its record."""
        if not self.engine.is_active:
            return self.engine.end_journey()

        await self._release()
        self.engine.tick()
        result = self.engine.end_journey()
        if result.ok:
            # Persistence happens in bus handlers; its outcome never reaches the engine
            await self._emit(EventType.JOURNEY_FINISHED, result.value)
        return result

    async def reset(self) -> OperationResult:
        """Abandon or clear the journey and return to not_started."""
        was = self.engine.status
        await self._release()
        result = self.engine.reset()
        if was != JourneyStatus.NOT_STARTED:
            await self._emit(EventType.JOURNEY_RESET, result.value)
        return result

    abandon = reset

    async def _release(self) -> None:
        if self._subscription is not None:
            await self._subscription.release()
            self._subscription = None

    async def _pump_samples(self) -> None:
        try:
            async for item in self.source.stream_positions():
                if isinstance(item, PositioningError):
                    self.last_error = item.message
                    logger.warning("Positioning error: %s", item.message)
                    await self._emit(EventType.POSITIONING_ERROR, item.message)
                    continue

                try:
                    result = self.engine.ingest_sample(item)
                except Exception as e:
                    # one bad item must not end the subscription
                    self.samples_rejected += 1
                    logger.error("Sample ingest failed: %s", e)
                    await self._emit(EventType.SAMPLE_REJECTED, str(e))
                    continue

                if not result.ok:
                    self.samples_rejected += 1
                    await self._emit(EventType.SAMPLE_REJECTED, str(result.error))
                elif result.value is not None:
                    await self._emit(
                        EventType.SAMPLE_ACCEPTED,
                        {"increment": result.value, "sample": self.engine.last_sample},
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = str(e)
            logger.error("Sample pump failed: %s", e)
            await self._emit(EventType.POSITIONING_ERROR, str(e))

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self.engine.tick()

    async def _emit(self, event_type: EventType, data: Any) -> None:
        if self.bus is not None:
            await self.bus.emit(event_type, data=data, source="journey_session")
