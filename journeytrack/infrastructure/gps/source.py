"""Positioning source interface and a replay implementation."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Protocol, Union

from ...domain.models import PositioningError, RawPosition

logger = logging.getLogger(__name__)

PositionItem = Union[RawPosition, PositioningError]


class PositioningSource(Protocol):
    """
    Anything that can stream raw positions.

    connect() probes capability; False means positioning is unavailable.
    stream_positions() yields RawPosition items, or PositioningError items
    on the error channel. stop() must end the stream promptly.
    """

    async def connect(self) -> bool: ...

    def stream_positions(self) -> AsyncIterator[PositionItem]: ...

    async def stop(self) -> None: ...


class ReplaySource:
    """Replays a fixed list of raw events, e.g. a recorded track."""

    def __init__(
        self,
        items: Iterable[PositionItem],
        interval: float = 0.0,
        available: bool = True,
    ) -> None:
        self._items = list(items)
        self._interval = interval
        self._available = available
        self._running = False
        self.delivered = 0

    async def connect(self) -> bool:
        if not self._available:
            logger.warning("Replay source marked unavailable")
        return self._available

    async def stream_positions(self) -> AsyncIterator[PositionItem]:
        self._running = True
        for item in self._items:
            if not self._running:
                break
            self.delivered += 1
            yield item
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        self._running = False

    @classmethod
    def from_jsonl(cls, path: str | Path, interval: float = 0.0) -> ReplaySource:
        """
        Load a recorded track, one JSON object per line.

        Objects carry latitude/longitude/speed/timestamp keys; an object with
        an "error" key replays as a PositioningError. Blank lines are skipped.

        Raises:
            ValueError: a line is not a JSON object
        """
        items: list[PositionItem] = []
        with Path(path).expanduser().open("r", encoding="utf-8") as fp:
            for lineno, line in enumerate(fp, 1):
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ValueError(f"{path}:{lineno}: {e}") from e
                if not isinstance(data, dict):
                    raise ValueError(f"{path}:{lineno}: expected a JSON object")
                if "error" in data:
                    items.append(PositioningError(str(data["error"])))
                else:
                    items.append(
                        RawPosition(
                            latitude=data.get("latitude"),
                            longitude=data.get("longitude"),
                            speed=data.get("speed"),
                            timestamp=data.get("timestamp"),
                        )
                    )
        logger.debug("Loaded %d replay items from %s", len(items), path)
        return cls(items, interval=interval)

    def __len__(self) -> int:
        return len(self._items)
