"""End-to-end integration tests — sources to a loopback ingestion endpoint.

These tests exercise the Shipper, RecordRouter, SinkConnectionManager,
LifecycleCoordinator and TcpConnector together over real sockets.
"""

from __future__ import annotations

import asyncio

import pytest

from docker_logentries.config import ShipperSettings
from docker_logentries.core.shipper import Shipper
from docker_logentries.models.connection import ConnectionState
from docker_logentries.models.records import EventRecord, LogRecord, StatsRecord
from docker_logentries.models.routing import Channel, TokenRule


class Endpoint:
    """Loopback stand-in for the ingestion endpoint.

    Collects received lines per connection.  When ``hang_up_after`` is set,
    the first connection is closed by the server after that many lines.
    """

    def __init__(self, hang_up_after: int | None = None) -> None:
        self.connections: list[list[bytes]] = []
        self._hang_up_after = hang_up_after
        self._server: asyncio.AbstractServer | None = None
        self.port = 0

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        lines: list[bytes] = []
        self.connections.append(lines)
        first = len(self.connections) == 1
        while line := await reader.readline():
            lines.append(line)
            if first and self._hang_up_after is not None and len(lines) >= self._hang_up_after:
                break
        writer.close()

    @property
    def lines(self) -> list[bytes]:
        return [line for conn in self.connections for line in conn]


def source_of(*records, pause: float = 0.0):
    async def _gen():
        for record in records:
            yield record
            await asyncio.sleep(pause)

    return _gen


def settings_for(endpoint: Endpoint, **overrides) -> ShipperSettings:
    return ShipperSettings(server="127.0.0.1", port=endpoint.port, **overrides)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_all_channels_over_tcp(self, wait_until):
        """Logs, stats and events reach a real TCP endpoint on one connection."""
        endpoint = Endpoint()
        await endpoint.start()
        try:
            settings = settings_for(
                endpoint,
                token_by_match=[TokenRule(pattern="nginx.*", token="T1")],
                stats_token="T2",
                events_token="T3",
                add={"host": "node-1"},
            )
            shipper = Shipper(
                settings,
                {
                    Channel.LOGS: source_of(
                        LogRecord(time=1620000000000, container_name="web-1", image="nginx", line="hello"),
                        LogRecord(time=1620000000000, container_name="db-1", image="postgres", line="dropped"),
                    ),
                    Channel.STATS: source_of(StatsRecord(payload={"stats": {"cpu": 1}})),
                    Channel.EVENTS: source_of(EventRecord(payload={"status": "start"})),
                },
            )
            await asyncio.wait_for(shipper.run(), 5.0)
            await wait_until(lambda: len(endpoint.lines) == 3)

            assert sorted(endpoint.lines) == sorted(
                [
                    b"T1 2021-05-03T00:00:00.000Z web-1 hello\n",
                    b'T2 {"stats":{"cpu":1},"host":"node-1"}\n',
                    b'T3 {"status":"start","host":"node-1"}\n',
                ]
            )
            assert len(endpoint.connections) == 1
            assert shipper.sink.state is ConnectionState.TORN_DOWN
        finally:
            await endpoint.stop()

    @pytest.mark.asyncio
    async def test_reconnects_after_server_hang_up(self, wait_until):
        """A server hang-up mid-stream loses nothing and keeps order."""
        endpoint = Endpoint(hang_up_after=2)
        await endpoint.start()
        try:
            records = [
                LogRecord(time=1620000000000, container_name="web-1", image="nginx", line=f"line-{i}")
                for i in range(6)
            ]
            shipper = Shipper(
                settings_for(endpoint, logs_token="T"),
                {Channel.LOGS: source_of(*records, pause=0.02)},
            )
            await asyncio.wait_for(shipper.run(), 5.0)

            received = [line.decode().rsplit(" ", 1)[1].strip() for line in endpoint.lines]
            assert received[:2] == ["line-0", "line-1"]
            assert len(endpoint.connections) >= 2
            assert shipper.sink.connection_count >= 2
            assert received[-1] == "line-5"
            assert received == sorted(received)
        finally:
            await endpoint.stop()
