"""
Async Repository Unit Tests
===========================

Tests for AsyncJourneyRepository and the persistence handler using pytest-asyncio.
"""

from datetime import UTC, datetime, timedelta

import aiosqlite
import pytest
import pytest_asyncio

from journeytrack.core.events import EventBus, EventType
from journeytrack.core.identity import StaticIdentity
from journeytrack.domain.models import JourneyRecord, TransportMode
from journeytrack.infrastructure.database import AsyncJourneyRepository, JourneyPersistenceHandler

pytestmark = pytest.mark.asyncio

T0 = datetime(2025, 6, 1, 8, 0, tzinfo=UTC)


def make_record(
    mode: TransportMode = TransportMode.CYCLING,
    distance_km: float = 1.5,
    elapsed_seconds: int = 300,
    offset_minutes: int = 0,
    route=((52.0, 21.0), (52.01, 21.0)),
) -> JourneyRecord:
    started = T0 + timedelta(minutes=offset_minutes)
    return JourneyRecord(
        transport_mode=mode,
        distance_km=distance_km,
        elapsed_seconds=elapsed_seconds,
        elapsed_formatted="00:05:00",
        started_at=started,
        completed_at=started + timedelta(seconds=elapsed_seconds),
        route=route,
    )


@pytest_asyncio.fixture
async def async_repo(tmp_path):
    """Create a temporary async repository for testing."""
    repo = AsyncJourneyRepository(tmp_path / "test_journeys.db")
    await repo.init_schema()
    yield repo
    await repo.close()


async def test_save_and_get_roundtrip(async_repo):
    record = make_record()
    journey_id = await async_repo.save_journey("alice", record)

    stored = await async_repo.get_journey("alice", journey_id)

    assert stored.id == journey_id
    assert stored.user_id == "alice"
    assert stored.record == record


async def test_journeys_scoped_by_user(async_repo):
    journey_id = await async_repo.save_journey("alice", make_record())
    assert await async_repo.get_journey("bob", journey_id) is None
    assert await async_repo.list_journeys("bob") == []


async def test_list_newest_first_with_limit(async_repo):
    for i in range(3):
        await async_repo.save_journey("alice", make_record(offset_minutes=i * 60))

    journeys = await async_repo.list_journeys("alice", limit=2)

    assert len(journeys) == 2
    assert journeys[0].record.started_at > journeys[1].record.started_at


async def test_stats(async_repo):
    await async_repo.save_journey("alice", make_record(distance_km=1.0, elapsed_seconds=100))
    await async_repo.save_journey("alice", make_record(distance_km=2.5, elapsed_seconds=200))

    stats = await async_repo.get_stats("alice")

    assert stats["journeys_total"] == 2
    assert stats["distance_km_total"] == pytest.approx(3.5)
    assert stats["elapsed_seconds_total"] == 300
    assert (await async_repo.get_stats("nobody"))["journeys_total"] == 0


async def test_save_user_once(async_repo):
    assert await async_repo.save_user("alice", email="a@example.com") is True
    assert await async_repo.save_user("alice", email="other@example.com") is False

    user = await async_repo.get_user("alice")
    assert user.email == "a@example.com"
    assert await async_repo.get_user("bob") is None


async def test_export_gpx(async_repo, tmp_path):
    journey_id = await async_repo.save_journey("alice", make_record())
    dest = tmp_path / "out" / "journey.gpx"

    count = await async_repo.export_gpx("alice", journey_id, dest)

    assert count == 2
    content = dest.read_text()
    assert '<trkpt lat="52.0" lon="21.0"/>' in content
    assert "<type>cycling</type>" in content


async def test_export_gpx_empty_route(async_repo, tmp_path):
    journey_id = await async_repo.save_journey("alice", make_record(route=()))
    dest = tmp_path / "empty.gpx"
    assert await async_repo.export_gpx("alice", journey_id, dest) == 0
    assert not dest.exists()


class TestPersistenceHandler:
    async def test_finished_journey_saved(self, async_repo):
        bus = EventBus()
        handler = JourneyPersistenceHandler(async_repo, StaticIdentity("alice"), bus)
        handler.attach()

        await bus.emit(EventType.JOURNEY_FINISHED, data=make_record())
        await bus.dispatch_pending()

        assert len(handler.saved_ids) == 1
        saved = bus.get_history(EventType.JOURNEY_SAVED)
        assert saved[0].data == {"id": handler.saved_ids[0], "user_id": "alice"}
        assert len(await async_repo.list_journeys("alice")) == 1

    async def test_missing_identity_reports_failure(self, async_repo):
        bus = EventBus()
        handler = JourneyPersistenceHandler(async_repo, StaticIdentity("  "), bus)
        handler.attach()

        await bus.emit(EventType.JOURNEY_FINISHED, data=make_record())
        await bus.dispatch_pending()

        failed = bus.get_history(EventType.PERSISTENCE_FAILED)
        assert failed[0].data == "no user identity"
        assert handler.saved_ids == []

    async def test_storage_error_reports_failure(self, async_repo, monkeypatch):
        bus = EventBus()
        handler = JourneyPersistenceHandler(async_repo, StaticIdentity("alice"), bus)
        handler.attach()

        async def broken_save(user_id, record):
            raise aiosqlite.OperationalError("database is locked")

        monkeypatch.setattr(async_repo, "save_journey", broken_save)
        await bus.emit(EventType.JOURNEY_FINISHED, data=make_record())
        await bus.dispatch_pending()

        failed = bus.get_history(EventType.PERSISTENCE_FAILED)
        assert failed[0].data == "database is locked"

    async def test_detach(self, async_repo):
        bus = EventBus()
        handler = JourneyPersistenceHandler(async_repo, StaticIdentity("alice"), bus)
        handler.attach()
        handler.detach()

        await bus.emit(EventType.JOURNEY_FINISHED, data=make_record())
        await bus.dispatch_pending()

        assert handler.saved_ids == []
