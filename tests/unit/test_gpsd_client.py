"""
GPS Client Unit Tests
=====================

TPV parsing, mock walker and a fake gpsd served over localhost.
"""

import asyncio
import json

import pytest

from journeytrack.config import GPSConfig
from journeytrack.domain.models import PositioningError, RawPosition
from journeytrack.infrastructure.gps import AsyncGPSClient, MockGPSClient
from journeytrack.tracking.normalizer import normalize


class TestParseTPV:
    def test_3d_fix(self):
        client = AsyncGPSClient()
        pos = client._parse_tpv(
            {"class": "TPV", "mode": 3, "lat": 52.1, "lon": 21.2, "speed": 2.5,
             "time": "2025-05-01T12:00:00.000Z"}
        )
        assert pos == RawPosition(latitude=52.1, longitude=21.2, speed=2.5,
                                  timestamp="2025-05-01T12:00:00.000Z")
        assert normalize(pos).value.speed_kmh == pytest.approx(9.0)

    @pytest.mark.parametrize(
        "data",
        [
            {"class": "TPV", "mode": 1, "lat": 52.1, "lon": 21.2},
            {"class": "TPV", "mode": 3, "lon": 21.2},
            {"class": "TPV"},
        ],
    )
    def test_no_fix_ignored(self, data):
        assert AsyncGPSClient()._parse_tpv(data) is None


@pytest.mark.asyncio
async def test_mock_client_walks_and_stops():
    client = MockGPSClient(interval=0, max_points=5)
    assert await client.connect() is True

    points = [p async for p in client.stream_positions()]

    assert len(points) == 5
    assert all(normalize(p).ok for p in points)
    assert client.position == points[-1]


@pytest.mark.asyncio
async def test_mock_client_unavailable():
    client = MockGPSClient(available=False)
    assert await client.connect() is False
    assert client.is_connected is False


@pytest.mark.asyncio
async def test_mock_from_config():
    cfg = GPSConfig(mock_lat=41.0, mock_lon=29.0, mock_speed_mps=3.0)
    client = MockGPSClient.from_config(cfg, interval=0, max_points=1)
    [pos] = [p async for p in client.stream_positions()]
    assert pos.latitude == pytest.approx(41.0)
    assert pos.speed == 3.0


@pytest.mark.asyncio
async def test_connection_refused_reports_on_error_channel(unused_tcp_port):
    cfg = GPSConfig(port=unused_tcp_port, reconnect_delay=0, max_reconnect_attempts=2)
    client = AsyncGPSClient(cfg)

    items = [item async for item in client.stream_positions()]

    assert len(items) == 2
    assert all(isinstance(i, PositioningError) for i in items)
    assert client.state.error_count == 2


@pytest.mark.asyncio
async def test_streams_tpv_from_gpsd():
    messages = [
        {"class": "VERSION", "release": "3.25"},
        {"class": "SKY", "satellites": [{}, {}, {}]},
        {"class": "TPV", "mode": 3, "lat": 52.0, "lon": 21.0, "speed": 1.0},
        {"class": "TPV", "mode": 1},
        {"class": "TPV", "mode": 2, "lat": 52.001, "lon": 21.0},
    ]
    watch_requests = []

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        watch_requests.append(await reader.readline())
        for msg in messages:
            writer.write((json.dumps(msg) + "\n").encode())
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    client = AsyncGPSClient(GPSConfig(host="127.0.0.1", port=port, reconnect_delay=0))

    positions = []
    async with server:
        async for item in client.stream_positions():
            if isinstance(item, RawPosition):
                positions.append(item)
            if len(positions) == 2:
                break
        await client.stop()

    assert watch_requests[0].startswith(b"?WATCH=")
    assert [p.latitude for p in positions] == [52.0, 52.001]
    assert client.state.satellites == 3
    assert client.state.fix_count == 2
