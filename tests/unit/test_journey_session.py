"""
Journey Session Unit Tests
==========================

Subscription lifecycle and late-sample isolation using pytest-asyncio.
"""

import asyncio

import pytest

from journeytrack.core.events import EventBus, EventType
from journeytrack.domain.models import JourneyStatus, PositioningError, RawPosition
from journeytrack.infrastructure.gps.source import ReplaySource
from journeytrack.tracking.engine import JourneyEngine
from journeytrack.tracking.errors import (
    IllegalTransition,
    InvalidTransportMode,
    PositioningUnavailable,
)
from journeytrack.tracking.session import JourneySession

pytestmark = pytest.mark.asyncio


async def settle(times: int = 5) -> None:
    """Let background tasks run."""
    for _ in range(times):
        await asyncio.sleep(0)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def session(clock, queue_source, bus):
    return JourneySession(JourneyEngine(clock=clock), queue_source, bus=bus, tick_interval=60)


async def test_start_acquires_subscription(session, queue_source, bus):
    result = await session.start("cycling")
    assert result.ok
    assert session.subscribed
    assert queue_source.connect_calls == 1

    await session.end()
    await bus.dispatch_pending()
    started = bus.get_history(EventType.JOURNEY_STARTED)
    assert len(started) == 1
    assert started[0].data.status == JourneyStatus.ACTIVE


async def test_unavailable_source_keeps_not_started(clock, queue_source, bus):
    queue_source.available = False
    session = JourneySession(JourneyEngine(clock=clock), queue_source, bus=bus)

    result = await session.start("walking")

    assert isinstance(result.error, PositioningUnavailable)
    assert session.engine.status == JourneyStatus.NOT_STARTED
    assert not session.subscribed
    assert session.last_error == "positioning source unavailable"
    await bus.dispatch_pending()
    assert len(bus.get_history(EventType.POSITIONING_UNAVAILABLE)) == 1


async def test_invalid_mode_never_touches_source(session, queue_source):
    result = await session.start("hovercraft")
    assert isinstance(result.error, InvalidTransportMode)
    assert queue_source.connect_calls == 0


async def test_start_while_active_is_illegal(session, queue_source):
    await session.start("cycling")
    result = await session.start("walking")
    assert isinstance(result.error, IllegalTransition)
    assert queue_source.connect_calls == 1
    await session.end()


async def test_samples_flow_into_engine(session, queue_source):
    await session.start("running")
    queue_source.push(RawPosition(latitude=52.2297, longitude=21.0122, speed=3.0))
    queue_source.push(RawPosition(latitude=52.2300, longitude=21.0130, speed=3.0))
    await settle()

    assert len(session.engine.route()) == 2
    assert session.engine.distance_km == pytest.approx(0.0639, abs=0.005)
    await session.end()


async def test_late_samples_never_reach_record(session, queue_source):
    await session.start("cycling")
    queue_source.push(RawPosition(latitude=52.0, longitude=21.0))
    await settle()

    record = (await session.end()).unwrap()
    queue_source.push(RawPosition(latitude=52.1, longitude=21.0))
    await settle()

    assert queue_source.stopped
    assert not session.subscribed
    assert record.point_count == 1
    assert len(session.engine.route()) == 1


async def test_rejected_sample_counted(session, queue_source, bus):
    await session.start("walking")
    queue_source.push(RawPosition(latitude=200.0, longitude=21.0))
    await settle()

    assert session.samples_rejected == 1
    assert session.engine.route() == ()
    assert session.engine.is_active
    await session.end()
    await bus.dispatch_pending()
    assert len(bus.get_history(EventType.SAMPLE_REJECTED)) == 1


async def test_positioning_error_does_not_end_journey(session, queue_source):
    await session.start("walking")
    queue_source.push(PositioningError("signal lost"))
    queue_source.push(RawPosition(latitude=52.0, longitude=21.0))
    await settle()

    assert session.last_error == "signal lost"
    assert session.engine.is_active
    assert len(session.engine.route()) == 1
    await session.end()


async def test_oversized_number_does_not_stop_intake(session, queue_source):
    await session.start("walking")
    queue_source.push(RawPosition(latitude=10**400, longitude=21.0))
    queue_source.push(RawPosition(latitude=52.0, longitude=21.0))
    await settle()

    assert session.samples_rejected == 1
    assert session.engine.route() == ((52.0, 21.0),)
    assert session.subscribed
    await session.end()


async def test_ingest_exception_skips_only_that_item(session, queue_source, monkeypatch):
    await session.start("walking")
    real_ingest = session.engine.ingest_sample
    calls = []

    def flaky_ingest(raw):
        calls.append(raw)
        if len(calls) == 1:
            raise RuntimeError("unexpected payload")
        return real_ingest(raw)

    monkeypatch.setattr(session.engine, "ingest_sample", flaky_ingest)
    queue_source.push(RawPosition(latitude=52.0, longitude=21.0))
    queue_source.push(RawPosition(latitude=52.001, longitude=21.0))
    await settle()

    assert len(calls) == 2
    assert session.samples_rejected == 1
    assert session.engine.route() == ((52.001, 21.0),)
    await session.end()


async def test_overlapping_starts_keep_winner_subscribed(clock, queue_source):
    real_connect = queue_source.connect

    async def slow_connect():
        await asyncio.sleep(0.01)
        return await real_connect()

    queue_source.connect = slow_connect
    session = JourneySession(JourneyEngine(clock=clock), queue_source, tick_interval=60)

    first, second = await asyncio.gather(session.start("cycling"), session.start("walking"))

    assert first.ok
    assert isinstance(second.error, IllegalTransition)
    assert session.engine.transport_mode.value == "cycling"
    assert session.subscribed
    assert queue_source.stopped is False

    queue_source.push(RawPosition(latitude=52.0, longitude=21.0))
    await settle()
    assert len(session.engine.route()) == 1
    await session.end()


async def test_ticker_uses_clock_anchor(clock, queue_source):
    session = JourneySession(JourneyEngine(clock=clock), queue_source, tick_interval=0.01)
    await session.start("driving")
    clock.advance(125)
    await asyncio.sleep(0.05)

    assert session.engine.elapsed_formatted == "00:02:05"
    record = (await session.end()).unwrap()
    assert record.elapsed_seconds == 125


async def test_end_publishes_record(session, bus):
    await session.start("cycling")
    result = await session.end()
    await bus.dispatch_pending()

    finished = bus.get_history(EventType.JOURNEY_FINISHED)
    assert len(finished) == 1
    assert finished[0].data == result.value


async def test_end_without_journey_is_illegal(session, queue_source):
    result = await session.end()
    assert isinstance(result.error, IllegalTransition)
    assert queue_source.stopped is False


async def test_abandon_releases_and_clears(session, queue_source, bus):
    await session.start("walking")
    queue_source.push(RawPosition(latitude=52.0, longitude=21.0))
    await settle()

    result = await session.abandon()

    assert result.value.status == JourneyStatus.NOT_STARTED
    assert result.value.route == ()
    assert queue_source.stopped
    await bus.dispatch_pending()
    assert len(bus.get_history(EventType.JOURNEY_RESET)) == 1


async def test_reset_from_not_started_emits_nothing(session, bus):
    result = await session.reset()
    assert result.ok
    await bus.dispatch_pending()
    assert bus.get_history(EventType.JOURNEY_RESET) == []


async def test_context_exit_releases(clock, queue_source):
    async with JourneySession(JourneyEngine(clock=clock), queue_source) as session:
        await session.start("cycling")
        assert session.subscribed
    assert not session.subscribed
    assert queue_source.stopped


async def test_replay_source_drives_full_journey(clock):
    source = ReplaySource(
        [
            RawPosition(latitude=41.0, longitude=29.0),
            RawPosition(latitude=41.001, longitude=29.0),
            RawPosition(latitude=41.002, longitude=29.0),
        ]
    )
    session = JourneySession(JourneyEngine(clock=clock), source, tick_interval=60)
    await session.start("walking")
    await settle(10)
    record = (await session.end()).unwrap()

    assert source.delivered == 3
    assert record.point_count == 3
    assert record.distance_km == pytest.approx(0.2224, abs=0.002)
