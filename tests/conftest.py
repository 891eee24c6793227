import asyncio

import pytest

from journeytrack.domain.models import PositioningError, RawPosition


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class QueueSource:
    """Positioning source fed by the test through push()."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.connect_calls = 0
        self.stopped = False
        self._queue: asyncio.Queue = asyncio.Queue()

    async def connect(self) -> bool:
        self.connect_calls += 1
        return self.available

    async def stream_positions(self):
        while True:
            yield await self._queue.get()

    async def stop(self) -> None:
        self.stopped = True

    def push(self, item: RawPosition | PositioningError) -> None:
        self._queue.put_nowait(item)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue_source():
    return QueueSource()
