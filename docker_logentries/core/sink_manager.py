"""Sink connection manager — supervised reconnect loop for the single sink.

Enforces:
- At most one live connection, replaced (never reused) on reconnect
- Valid state transitions only (VALID_TRANSITIONS table)
- No write on a dead connection: the old one is detached before a new one opens
- Records queued but not yet written survive a reconnect
- Teardown is terminal: no reconnection afterwards
- A TLS authorization failure is fatal and never retried
"""

from __future__ import annotations

import asyncio
import logging

from docker_logentries.bridge.transport import (
    Connection,
    Connector,
    SecurityError,
    TransportError,
)
from docker_logentries.models.connection import VALID_TRANSITIONS, ConnectionState

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested connection state transition is not valid."""


class SinkConnectionManager:
    """Owns the outbound connection and keeps it alive until teardown.

    Records are handed over with :meth:`send`, which appends to a bounded
    in-memory queue.  :meth:`run` is the supervisor: it connects, pumps the
    queue into the connection, and reconnects whenever the connection ends.
    When the queue is full ``send`` blocks, pushing backpressure upstream.

    Parameters
    ----------
    connector:
        Opens new connections.
    max_pending:
        Queue bound, in records.
    reconnect_delay:
        Seconds to wait after a failed connection attempt.  ``0`` retries
        immediately.
    connect_timeout:
        Seconds before a connection attempt is abandoned.  ``None`` waits
        indefinitely.
    """

    def __init__(
        self,
        connector: Connector,
        *,
        max_pending: int = 1024,
        reconnect_delay: float = 0.0,
        connect_timeout: float | None = None,
    ) -> None:
        self._connector = connector
        self._reconnect_delay = reconnect_delay
        self._connect_timeout = connect_timeout

        self._queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=max_pending)
        self._inflight: bytes | None = None
        self._state = ConnectionState.DISCONNECTED
        self._connection: Connection | None = None
        self._connection_count = 0
        self._supervisor: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection_count(self) -> int:
        """Number of connections established so far."""
        return self._connection_count

    @property
    def pending(self) -> int:
        """Records accepted by :meth:`send` but not yet written."""
        return self._queue.qsize() + (1 if self._inflight is not None else 0)

    def _transition(self, target: ConnectionState) -> None:
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition sink from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        logger.debug("Sink state %s -> %s", self._state.value, target.value)
        self._state = target

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def send(self, data: bytes) -> None:
        """Queue *data* for delivery.  A no-op once the sink is torn down."""
        if self._state is ConnectionState.TORN_DOWN:
            return
        await self._queue.put(data)

    # ------------------------------------------------------------------
    # Supervisor
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Connect, forward, and reconnect until :meth:`teardown`.

        Returns normally after teardown.

        Raises
        ------
        SecurityError
            If the peer is not authorized.  The sink is torn down first.
        """
        if self._supervisor is not None:
            raise RuntimeError("SinkConnectionManager.run() is already running")
        self._supervisor = asyncio.current_task()

        try:
            while self._state is not ConnectionState.TORN_DOWN:
                connection = await self._connect()
                if connection is not None:
                    await self._serve(connection)
        except asyncio.CancelledError:
            if self._state is not ConnectionState.TORN_DOWN:
                raise
        logger.debug("Sink supervisor stopped")

    async def _connect(self) -> Connection | None:
        self._transition(ConnectionState.CONNECTING)
        try:
            if self._connect_timeout is None:
                connection = await self._connector.open()
            else:
                connection = await asyncio.wait_for(
                    self._connector.open(), self._connect_timeout
                )
        except SecurityError:
            logger.error("Sink connection refused by TLS verification; giving up")
            if self._state is not ConnectionState.TORN_DOWN:
                self._transition(ConnectionState.TORN_DOWN)
            raise
        except (TransportError, asyncio.TimeoutError) as exc:
            logger.warning("Sink connection attempt failed: %s", str(exc) or "timed out")
            self._transition(ConnectionState.DISCONNECTED)
            # Always yield to the loop, even when retrying immediately.
            await asyncio.sleep(self._reconnect_delay)
            return None

        if self._state is ConnectionState.TORN_DOWN:
            await connection.close()
            return None
        return connection

    async def _serve(self, connection: Connection) -> None:
        self._connection = connection
        self._connection_count += 1
        self._transition(ConnectionState.CONNECTED)
        logger.info(
            "Sink connected to %s (connection #%d, %d pending)",
            connection.peer,
            self._connection_count,
            self.pending,
        )

        writer = asyncio.create_task(self._pump(connection))
        watcher = asyncio.create_task(connection.wait_closed_by_peer())
        try:
            done, _ = await asyncio.wait(
                {writer, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            writer.cancel()
            watcher.cancel()
            await asyncio.gather(writer, watcher, return_exceptions=True)
            self._connection = None
            await connection.close()

        if self._state is not ConnectionState.CONNECTED:
            return
        reason = "closed by peer"
        if writer in done and not writer.cancelled() and writer.exception() is not None:
            reason = str(writer.exception())
        logger.warning("Sink connection to %s lost (%s); reconnecting", connection.peer, reason)
        self._transition(ConnectionState.DISCONNECTED)

    async def _pump(self, connection: Connection) -> None:
        while True:
            if self._inflight is None:
                self._inflight = await self._queue.get()
            await connection.write(self._inflight)
            self._inflight = None
            self._queue.task_done()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def teardown(self, flush_timeout: float | None = None) -> None:
        """Stop reconnecting and close the current connection.

        Parameters
        ----------
        flush_timeout:
            When set and the supervisor is running, wait up to this many
            seconds for queued records to be written before closing.  The
            supervisor keeps reconnecting meanwhile.  Whatever is still
            queued afterwards is discarded.
        """
        if self._state is ConnectionState.TORN_DOWN:
            logger.debug("Sink already torn down")
            return

        supervisor = self._supervisor
        supervised = supervisor is not None and not supervisor.done()
        if flush_timeout and supervised and self.pending:
            try:
                await asyncio.wait_for(self._queue.join(), flush_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Sink flush timed out after %.1fs; discarding %d pending record(s)",
                    flush_timeout,
                    self.pending,
                )
            if self._state is ConnectionState.TORN_DOWN:
                return

        self._transition(ConnectionState.TORN_DOWN)
        connection, self._connection = self._connection, None
        if (
            supervisor is not None
            and not supervisor.done()
            and supervisor is not asyncio.current_task()
        ):
            supervisor.cancel()
        if connection is not None:
            await connection.close()
        logger.info(
            "Sink torn down after %d connection(s); %d record(s) unsent",
            self._connection_count,
            self.pending,
        )
