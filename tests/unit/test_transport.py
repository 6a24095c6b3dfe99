"""Tests for the transport bridge — real loopback sockets, no network."""

from __future__ import annotations

import asyncio
import ssl

import pytest

from docker_logentries.bridge.transport import (
    Connector,
    SecurityError,
    TcpConnector,
    TransportError,
)


async def start_collector():
    """Start a loopback server that collects everything it receives."""
    received: list[bytes] = []
    writers: list[asyncio.StreamWriter] = []

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writers.append(writer)
        while data := await reader.read(4096):
            received.append(data)
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port, received, writers


class TestTcpConnector:
    def test_satisfies_connector_protocol(self):
        """TcpConnector is usable wherever a Connector is expected."""
        assert isinstance(TcpConnector("localhost", 80), Connector)

    def test_address(self):
        """The address shows the scheme that will be used."""
        assert TcpConnector("data.logentries.com", 80).address == "tcp://data.logentries.com:80"
        secure = TcpConnector("data.logentries.com", 443, secure=True)
        assert secure.address == "tls://data.logentries.com:443"

    @pytest.mark.asyncio
    async def test_write_reaches_server(self, wait_until):
        """Bytes written arrive at the endpoint unchanged."""
        server, port, received, _ = await start_collector()
        async with server:
            connection = await TcpConnector("127.0.0.1", port).open()
            assert connection.peer == f"tcp://127.0.0.1:{port}"
            await connection.write(b"T hello\n")
            await wait_until(lambda: b"".join(received) == b"T hello\n")
            await connection.close()
            assert connection.is_closed

    @pytest.mark.asyncio
    async def test_refused_connection_is_transport_error(self):
        """A refused connect is a retryable TransportError."""
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        with pytest.raises(TransportError, match="Cannot connect"):
            await TcpConnector("127.0.0.1", port).open()

    @pytest.mark.asyncio
    async def test_certificate_failure_is_security_error(self, monkeypatch):
        """A failed certificate check is a fatal SecurityError."""

        async def refuse(*args, **kwargs):
            raise ssl.SSLCertVerificationError(1, "certificate verify failed")

        monkeypatch.setattr(asyncio, "open_connection", refuse)
        with pytest.raises(SecurityError, match="not authorized"):
            await TcpConnector("example.invalid", 443, secure=True).open()

    @pytest.mark.asyncio
    async def test_secure_uses_verifying_context(self, monkeypatch):
        """TLS verifies the certificate and the host name."""
        seen = {}

        async def capture(host, port, **kwargs):
            seen.update(kwargs)
            raise OSError("stop here")

        monkeypatch.setattr(asyncio, "open_connection", capture)
        with pytest.raises(TransportError):
            await TcpConnector("example.invalid", 443, secure=True).open()
        assert isinstance(seen["ssl"], ssl.SSLContext)
        assert seen["ssl"].verify_mode is ssl.CERT_REQUIRED
        assert seen["server_hostname"] == "example.invalid"


class TestConnection:
    @pytest.mark.asyncio
    async def test_peer_close_is_observed(self):
        """A server-side close wakes the peer watcher."""
        server, port, _, writers = await start_collector()
        async with server:
            connection = await TcpConnector("127.0.0.1", port).open()
            watcher = asyncio.create_task(connection.wait_closed_by_peer())
            while not writers:
                await asyncio.sleep(0.001)
            writers[0].close()
            await asyncio.wait_for(watcher, 2.0)
            await connection.close()

    @pytest.mark.asyncio
    async def test_write_after_close_raises(self):
        """Writing to a closed connection fails; closing twice does not."""
        server, port, _, _ = await start_collector()
        async with server:
            connection = await TcpConnector("127.0.0.1", port).open()
            await connection.close()
            await connection.close()
            with pytest.raises(TransportError, match="closed"):
                await connection.write(b"late\n")
