"""Transport bridge — plain TCP or TLS connections to the ingestion endpoint.

Bridge boundary
---------------
The sink connection manager only depends on the ``Connector`` protocol and
the ``Connection`` wrapper defined here, never on raw asyncio streams.  That
keeps the reconnect state machine testable without sockets: tests hand it a
connector that returns in-memory connections.

``TcpConnector`` is the production connector.  With ``secure=True`` it uses a
verifying ``ssl.SSLContext``; a peer certificate that fails verification is
reported as ``SecurityError`` and is never retried.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


class TransportError(RuntimeError):
    """Raised when a connection cannot be opened or a write fails.

    Transport errors are absorbed by the sink connection manager, which
    reconnects.
    """


class SecurityError(RuntimeError):
    """Raised when a TLS peer is not authorized.

    This error is fatal: the process must exit rather than reconnect.
    """


class Connection:
    """One live outbound connection.

    Wraps an asyncio ``StreamReader``/``StreamWriter`` pair.  A connection is
    never reopened; the manager replaces it with a new instance instead.

    Parameters
    ----------
    reader, writer:
        The stream pair returned by ``asyncio.open_connection``.
    peer:
        Human-readable peer address for log messages.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        peer: str = "",
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._peer = peer
        self._closed = False

    @property
    def peer(self) -> str:
        return self._peer

    @property
    def is_closed(self) -> bool:
        return self._closed or self._writer.is_closing()

    async def write(self, data: bytes) -> None:
        """Write *data* and wait for the transport buffer to drain.

        Raises
        ------
        TransportError
            If the connection is closed or the write fails.
        """
        if self.is_closed:
            raise TransportError(f"Connection to {self._peer} is closed")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except (OSError, RuntimeError) as exc:
            raise TransportError(f"Write to {self._peer} failed: {exc}") from exc

    async def wait_closed_by_peer(self) -> None:
        """Return once the peer closes the connection or it errors.

        The endpoint never sends application data, so anything read is
        discarded.
        """
        try:
            while await self._reader.read(_READ_CHUNK):
                pass
        except OSError as exc:
            logger.debug("Connection to %s errored: %s", self._peer, exc)

    async def close(self) -> None:
        """Close the connection.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ssl.SSLError) as exc:
            logger.debug("Error while closing connection to %s: %s", self._peer, exc)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"Connection(peer={self._peer!r}, {state})"


@runtime_checkable
class Connector(Protocol):
    """Anything that can open a fresh ``Connection``."""

    async def open(self) -> Connection:
        """Open a new connection.

        Raises ``TransportError`` for retryable failures and
        ``SecurityError`` for fatal ones.
        """
        ...


class TcpConnector:
    """Opens plain TCP or TLS connections to ``server:port``.

    Parameters
    ----------
    server:
        Hostname of the ingestion endpoint.
    port:
        TCP port.
    secure:
        Wrap the connection in TLS and verify the peer certificate.
    ssl_context:
        Custom context to use when ``secure`` is set.  Defaults to
        ``ssl.create_default_context()``.
    """

    def __init__(
        self,
        server: str,
        port: int,
        *,
        secure: bool = False,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self._server = server
        self._port = port
        self._secure = secure
        self._ssl_context = ssl_context

    @property
    def address(self) -> str:
        scheme = "tls" if self._secure else "tcp"
        return f"{scheme}://{self._server}:{self._port}"

    async def open(self) -> Connection:
        context: ssl.SSLContext | None = None
        if self._secure:
            context = self._ssl_context or ssl.create_default_context()

        try:
            reader, writer = await asyncio.open_connection(
                self._server,
                self._port,
                ssl=context,
                server_hostname=self._server if context is not None else None,
            )
        except ssl.SSLCertVerificationError as exc:
            raise SecurityError(
                f"Secure connection to {self.address} not authorized: "
                f"{getattr(exc, 'verify_message', None) or exc}"
            ) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Cannot connect to {self.address}: {exc}") from exc

        logger.debug("TcpConnector: opened %s", self.address)
        return Connection(reader, writer, peer=self.address)

    def __repr__(self) -> str:
        return f"TcpConnector({self.address})"
