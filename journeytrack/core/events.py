"""
journeytrack Event Bus - Async Pub/Sub Event System
===================================================

Decouples the journey session from its collaborators (persistence,
rendering, alerts). Handlers run on the event loop, never inside the
engine, so a slow or failing handler cannot affect journey state.

Usage:
    bus = EventBus()

    @bus.on(EventType.JOURNEY_FINISHED)
    async def store(event: Event):
        await repo.save_journey(user_id, event.data)

    await bus.emit(EventType.JOURNEY_FINISHED, data=record)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Coroutine, TypeAlias

logger = logging.getLogger(__name__)

AsyncHandler: TypeAlias = Callable[["Event"], Coroutine[Any, Any, None]]


class EventType(Enum):
    """All event types in the system."""

    # Journey lifecycle
    JOURNEY_STARTED = auto()
    JOURNEY_FINISHED = auto()
    JOURNEY_RESET = auto()

    # Samples
    SAMPLE_ACCEPTED = auto()
    SAMPLE_REJECTED = auto()

    # Positioning
    POSITIONING_ERROR = auto()
    POSITIONING_UNAVAILABLE = auto()

    # Persistence
    JOURNEY_SAVED = auto()
    PERSISTENCE_FAILED = auto()


@dataclass
class Event:
    """Event with metadata."""

    type: EventType
    data: Any = None
    timestamp: float = field(default_factory=time.time)
    source: str = "system"
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        if self.correlation_id is None:
            self.correlation_id = str(uuid.uuid4())[:8]


@dataclass
class HandlerInfo:
    """Handler registration info."""

    handler: AsyncHandler
    priority: int = 100  # Lower = higher priority
    once: bool = False  # Remove after first call


class EventBus:
    """
    Async event bus with pub/sub pattern.

    Supports:
    - Multiple handlers per event
    - Priority ordering
    - One-time handlers
    - Event history
    - Error isolation
    """

    def __init__(self, max_history: int = 1000) -> None:
        self._handlers: dict[EventType, list[HandlerInfo]] = {}
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._running = False
        self._task: asyncio.Task | None = None
        self._history: list[Event] = []
        self._max_history = max_history
        self._stats = {
            "events_published": 0,
            "events_processed": 0,
            "handler_errors": 0,
        }

    def subscribe(
        self,
        event_type: EventType,
        handler: AsyncHandler,
        priority: int = 100,
        once: bool = False,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event to listen for
            handler: Async handler function
            priority: Lower = called first (default 100)
            once: Remove handler after first call
        """
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(HandlerInfo(handler=handler, priority=priority, once=once))
        handlers.sort(key=lambda h: h.priority)

        logger.debug(
            "Subscribed to %s: %s (priority=%d)",
            event_type.name,
            getattr(handler, "__name__", repr(handler)),
            priority,
        )

    def unsubscribe(self, event_type: EventType, handler: AsyncHandler) -> bool:
        """Remove a handler. Returns True if found."""
        for i, info in enumerate(self._handlers.get(event_type, [])):
            if info.handler == handler:
                del self._handlers[event_type][i]
                return True
        return False

    def on(
        self, event_type: EventType, priority: int = 100, once: bool = False
    ) -> Callable[[AsyncHandler], AsyncHandler]:
        """Decorator for subscribing to events."""
        def decorator(handler: AsyncHandler) -> AsyncHandler:
            self.subscribe(event_type, handler, priority, once)
            return handler
        return decorator

    async def emit(
        self,
        event_type: EventType,
        data: Any = None,
        source: str = "system",
    ) -> Event:
        """Queue an event for dispatch. Returns the created Event."""
        event = Event(type=event_type, data=data, source=source)
        await self._queue.put(event)
        self._stats["events_published"] += 1
        return event

    async def start(self) -> None:
        """Start the event processing loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_loop())
        logger.info("Event bus started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop the event bus, draining queued events first."""
        if self._task:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Event queue drain timeout, forcing stop")

            self._running = False
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._running = False
        logger.info("Event bus stopped")

    async def dispatch_pending(self) -> int:
        """Dispatch everything queued so far without the background loop."""
        count = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()
            count += 1
        return count

    async def _process_loop(self) -> None:
        """Main event processing loop."""
        while self._running:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        """Dispatch event to all handlers."""
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = list(self._handlers.get(event.type, []))
        if not handlers:
            logger.debug("No handlers for %s", event.type.name)
            return

        for info in handlers:
            if info.once:
                self._handlers[event.type].remove(info)
            try:
                await info.handler(event)
                self._stats["events_processed"] += 1
            except Exception as e:
                logger.error(
                    "Handler error for %s: %s - %s",
                    event.type.name,
                    getattr(info.handler, "__name__", repr(info.handler)),
                    e,
                )
                self._stats["handler_errors"] += 1

    def get_history(
        self,
        event_type: EventType | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Get recent events, optionally filtered by type."""
        events = self._history
        if event_type:
            events = [e for e in events if e.type == event_type]
        return events[-limit:]

    def get_stats(self) -> dict:
        """Get event bus statistics."""
        return {
            **self._stats,
            "queue_size": self._queue.qsize(),
            "handler_count": sum(len(h) for h in self._handlers.values()),
            "history_size": len(self._history),
        }
