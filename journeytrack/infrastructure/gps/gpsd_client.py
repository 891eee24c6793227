"""Async gpsd client with auto-reconnect and graceful degradation."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from ...config import GPSConfig
from ...domain.models import PositioningError, RawPosition
from .source import PositionItem

logger = logging.getLogger(__name__)


@dataclass
class GPSState:
    """Internal GPS state tracking."""

    connected: bool = False
    fix_count: int = 0
    error_count: int = 0
    last_fix: Optional[datetime] = None
    satellites: int = 0


class AsyncGPSClient:
    """
    Async gpsd client with auto-reconnect.

    Features:
    - Non-blocking async connection
    - Automatic reconnection on disconnect, bounded by config
    - Connection problems reported on the error channel, never raised
    - Speed passed through in m/s as gpsd reports it

    Usage:
        client = AsyncGPSClient()

        async for item in client.stream_positions():
            if isinstance(item, RawPosition):
                engine.ingest_sample(item)
    """

    def __init__(self, config: GPSConfig | None = None) -> None:
        self.config = config or GPSConfig()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._running = False
        self._position: Optional[RawPosition] = None
        self._state = GPSState()
        self._reconnect_attempts = 0

    @property
    def position(self) -> Optional[RawPosition]:
        """Get last known raw position."""
        return self._position

    @property
    def is_connected(self) -> bool:
        """Check if connected to gpsd."""
        return self._state.connected

    @property
    def state(self) -> GPSState:
        """Get internal state for diagnostics."""
        return self._state

    async def connect(self) -> bool:
        """
        Connect to gpsd daemon.

        Returns:
            True if connected successfully, False otherwise.
        """
        if self._reader is not None:
            return True
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=self.config.timeout,
            )

            # Enable JSON streaming mode
            self._writer.write(b'?WATCH={"enable":true,"json":true}\n')
            await self._writer.drain()

            self._state.connected = True
            self._reconnect_attempts = 0
            logger.info("Connected to gpsd at %s:%d", self.config.host, self.config.port)
            return True

        except asyncio.TimeoutError:
            logger.warning("GPS connection timeout to %s:%d", self.config.host, self.config.port)
        except ConnectionRefusedError:
            logger.warning("GPS connection refused - is gpsd running?")
        except OSError as e:
            logger.warning("GPS connection failed: %s", e)

        self._state.error_count += 1
        return False

    async def disconnect(self) -> None:
        """Disconnect from gpsd gracefully."""
        writer = self._writer
        self._reader = None
        self._writer = None
        self._state.connected = False
        if writer:
            try:
                writer.write(b'?WATCH={"enable":false}\n')
                await writer.drain()
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug("GPS disconnect error ignored: %s", e)

    async def stream_positions(self) -> AsyncIterator[PositionItem]:
        """
        Async generator that yields raw positions as they arrive.

        Reconnects automatically. Problems are yielded as PositioningError
        items; the stream ends after max_reconnect_attempts failed connects
        (0 = retry forever) or when stop() is called.
        """
        self._running = True

        while self._running:
            if not self._reader:
                if not await self.connect():
                    self._reconnect_attempts += 1
                    yield PositioningError(
                        f"gpsd unavailable at {self.config.host}:{self.config.port}"
                    )

                    if (
                        self.config.max_reconnect_attempts > 0
                        and self._reconnect_attempts >= self.config.max_reconnect_attempts
                    ):
                        logger.error("GPS max reconnect attempts reached, stopping")
                        break

                    await asyncio.sleep(self.config.reconnect_delay)
                    continue

            try:
                line = await asyncio.wait_for(
                    self._reader.readline(),  # type: ignore[union-attr]
                    timeout=self.config.timeout,
                )

                if not line:
                    raise ConnectionError("GPS connection closed by server")

                data = json.loads(line.decode("utf-8"))

                # Handle TPV (Time-Position-Velocity) messages
                if data.get("class") == "TPV":
                    pos = self._parse_tpv(data)
                    if pos:
                        self._position = pos
                        self._state.fix_count += 1
                        self._state.last_fix = datetime.now(UTC)
                        yield pos

                # Handle SKY messages (satellite info)
                elif data.get("class") == "SKY":
                    self._state.satellites = len(data.get("satellites", []))

            except asyncio.TimeoutError:
                # Timeout is OK - just means no new data
                logger.debug("GPS read timeout, connection still alive")

            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("GPS JSON parse error: %s", e)

            except (ConnectionError, OSError) as e:
                logger.warning("GPS stream error: %s, reconnecting...", e)
                self._state.error_count += 1
                yield PositioningError(f"GPS stream error: {e}")
                await self.disconnect()
                await asyncio.sleep(self.config.reconnect_delay)

    def _parse_tpv(self, data: dict) -> Optional[RawPosition]:
        """
        Parse TPV (Time-Position-Velocity) message from gpsd.

        Args:
            data: JSON dict from gpsd TPV message

        Returns:
            RawPosition if lat/lon present (no fix otherwise), None otherwise
        """
        # Mode: 0=unknown, 1=no fix, 2=2D, 3=3D
        if "lat" not in data or "lon" not in data or data.get("mode", 0) < 2:
            return None

        return RawPosition(
            latitude=data["lat"],
            longitude=data["lon"],
            speed=data.get("speed"),  # m/s
            timestamp=data.get("time"),  # ISO-8601, normalized downstream
        )

    async def stop(self) -> None:
        """Stop streaming and disconnect."""
        self._running = False
        await self.disconnect()


class MockGPSClient(AsyncGPSClient):
    """
    Mock GPS client for testing and simulation.

    Walks a circle of roughly 110 m radius around the start point.
    """

    def __init__(
        self,
        start_lat: float = 52.2297,  # Warsaw
        start_lon: float = 21.0122,
        speed_mps: float = 1.4,
        interval: float = 1.0,
        max_points: int | None = None,
        available: bool = True,
    ) -> None:
        super().__init__()
        self._start_lat = start_lat
        self._start_lon = start_lon
        self._speed = speed_mps
        self._interval = interval
        self._max_points = max_points
        self._available = available
        self._step = 0

    @classmethod
    def from_config(cls, config: GPSConfig, **kwargs) -> MockGPSClient:
        return cls(
            start_lat=config.mock_lat,
            start_lon=config.mock_lon,
            speed_mps=config.mock_speed_mps,
            **kwargs,
        )

    async def connect(self) -> bool:
        """Mock connects unless built unavailable."""
        self._state.connected = self._available
        if self._available:
            logger.info("Mock GPS connected (simulated)")
        return self._available

    async def disconnect(self) -> None:
        self._state.connected = False

    async def stream_positions(self) -> AsyncIterator[PositionItem]:
        """Generate fake positions in a walking pattern."""
        self._running = True

        while self._running:
            if self._max_points is not None and self._step >= self._max_points:
                break

            angle = math.radians(self._step * 5)
            radius = 0.001  # ~111 meters

            pos = RawPosition(
                latitude=self._start_lat + radius * math.sin(angle),
                longitude=self._start_lon + radius * math.cos(angle),
                speed=self._speed,
                timestamp=datetime.now(UTC),
            )

            self._position = pos
            self._step += 1

            yield pos
            await asyncio.sleep(self._interval)
