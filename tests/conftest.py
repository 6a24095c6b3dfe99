"""Shared test fixtures for docker-logentries."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from docker_logentries.bridge.transport import TransportError
from docker_logentries.models.records import EventRecord, LogRecord, StatsRecord


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep LOGENTRIES_* variables and stray .env files out of every test."""
    for key in list(os.environ):
        if key.upper().startswith("LOGENTRIES_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# In-memory transport
# ---------------------------------------------------------------------------


class FakeConnection:
    """A ``Connection`` stand-in that records writes in memory.

    ``fail_after`` makes every write after that many successful ones raise
    ``TransportError``.  ``stall`` makes writes block until the connection
    is closed.
    """

    def __init__(self, peer: str = "fake", *, fail_after: int | None = None, stall: bool = False):
        self.peer = peer
        self.written: list[bytes] = []
        self.closed = False
        self._fail_after = fail_after
        self._stall = stall
        self._gone = asyncio.Event()

    @property
    def is_closed(self) -> bool:
        return self.closed

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise TransportError(f"Connection to {self.peer} is closed")
        if self._stall:
            await self._gone.wait()
            raise TransportError("stalled connection closed")
        if self._fail_after is not None and len(self.written) >= self._fail_after:
            raise TransportError("broken pipe")
        self.written.append(data)
        await asyncio.sleep(0)

    async def wait_closed_by_peer(self) -> None:
        await self._gone.wait()

    def drop(self) -> None:
        """Simulate the peer closing the connection."""
        self._gone.set()

    async def close(self) -> None:
        self.closed = True
        self._gone.set()


class FakeConnector:
    """Hands out scripted outcomes, then fresh ``FakeConnection`` objects.

    Each scripted outcome is either a connection to return or an exception
    to raise from ``open``.
    """

    def __init__(self, *outcomes: Any):
        self._outcomes = list(outcomes)
        self.opens = 0
        self.connections: list[FakeConnection] = []

    async def open(self) -> FakeConnection:
        self.opens += 1
        await asyncio.sleep(0)
        outcome = self._outcomes.pop(0) if self._outcomes else FakeConnection(f"fake-{self.opens}")
        if isinstance(outcome, BaseException):
            raise outcome
        self.connections.append(outcome)
        return outcome

    @property
    def written(self) -> list[bytes]:
        """Everything written, across all connections, in order."""
        return [data for conn in self.connections for data in conn.written]


class HangingConnector:
    """A connector whose ``open`` never completes."""

    def __init__(self) -> None:
        self.opens = 0

    async def open(self) -> FakeConnection:
        self.opens += 1
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


@pytest.fixture
def fake_connector() -> Callable[..., FakeConnector]:
    """Factory fixture: build a FakeConnector from scripted outcomes."""
    return FakeConnector


@pytest.fixture
def fake_connection() -> Callable[..., FakeConnection]:
    """Factory fixture: build a FakeConnection."""
    return FakeConnection


@pytest.fixture
def hanging_connector() -> HangingConnector:
    return HangingConnector()


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    """Provide ``await wait_until(predicate)``, polling the event loop."""
    return _wait_until


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_log_record() -> Callable[..., LogRecord]:
    """Factory fixture: build a LogRecord with sensible defaults."""

    def _factory(
        line: str = "hello",
        container_name: str = "web-1",
        image: str = "nginx",
        time: Any = 1620000000000,
        **overrides: Any,
    ) -> LogRecord:
        return LogRecord(
            line=line,
            container_name=container_name,
            image=image,
            time=time,
            **overrides,
        )

    return _factory


@pytest.fixture
def make_stats_record() -> Callable[..., StatsRecord]:
    """Factory fixture: build a StatsRecord with sensible defaults."""

    def _factory(payload: dict[str, Any] | None = None, **overrides: Any) -> StatsRecord:
        if payload is None:
            payload = {"stats": {"cpu": 1}}
        return StatsRecord(payload=payload, **overrides)

    return _factory


@pytest.fixture
def make_event_record() -> Callable[..., EventRecord]:
    """Factory fixture: build an EventRecord with sensible defaults."""

    def _factory(payload: dict[str, Any] | None = None, **overrides: Any) -> EventRecord:
        if payload is None:
            payload = {"status": "start", "id": "abc123"}
        return EventRecord(payload=payload, **overrides)

    return _factory


@pytest.fixture
def utc() -> Callable[..., datetime]:
    """Shorthand for building aware UTC datetimes."""

    def _factory(*args: int) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)

    return _factory
