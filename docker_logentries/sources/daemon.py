"""Docker-backed sources — container logs, stats samples and daemon events.

Each source is an async generator of typed records.  The Docker SDK work
happens in worker threads (see ``_threaded``); the records are built there
and handed to the event loop unchanged.
"""

from __future__ import annotations

import codecs
import re
import threading
import time
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from typing import Any

import docker

from docker_logentries.config import ShipperSettings
from docker_logentries.models.records import EventRecord, LogRecord, StatsRecord
from docker_logentries.sources._threaded import Emit, threaded_source
from docker_logentries.sources.containers import ContainerFilter, watch_containers

ClientFactory = Callable[[], Any]

# RFC 3339 with nanoseconds, as written by `docker logs --timestamps`.
_TIMESTAMPED = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2}) (.*)$",
    re.DOTALL,
)


def parse_log_line(text: str, container_name: str, image: str) -> LogRecord:
    """Split a timestamped docker log line into a ``LogRecord``.

    Lines without a recognizable timestamp are stamped with the current time.
    """
    match = _TIMESTAMPED.match(text)
    if match is None:
        return LogRecord(
            time=datetime.now(timezone.utc),
            container_name=container_name,
            image=image,
            line=text,
        )
    base, fraction, zone, line = match.groups()
    micros = (fraction or "")[:6].ljust(6, "0")
    offset = "+00:00" if zone == "Z" else zone
    return LogRecord(
        time=datetime.fromisoformat(f"{base}.{micros}{offset}"),
        container_name=container_name,
        image=image,
        line=line,
    )


def _follow_logs(container: Any, name: str, image: str, emit: Emit) -> None:
    # Per attach: a restarted container is attached again.
    since = time.time()
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    stream = container.logs(stream=True, follow=True, timestamps=True, since=since)
    for chunk in stream:
        pending += decoder.decode(chunk)
        *lines, pending = pending.split("\n")
        for text in lines:
            text = text.rstrip("\r")
            if text:
                emit(parse_log_line(text, name, image))
    pending += decoder.decode(b"", final=True)
    if pending.strip():
        emit(parse_log_line(pending.rstrip("\r"), name, image))


def _sample_stats(
    container: Any, name: str, image: str, emit: Emit, interval: float
) -> None:
    last = float("-inf")
    for sample in container.stats(stream=True, decode=True):
        now = time.monotonic()
        if now - last < interval:
            continue
        last = now
        emit(
            StatsRecord(
                payload={"id": container.id, "image": image, "name": name, "stats": sample}
            )
        )


async def docker_log_source(
    settings: ShipperSettings,
    container_filter: ContainerFilter,
    client_factory: ClientFactory = docker.from_env,
) -> AsyncIterator[LogRecord]:
    """Follow the logs of every accepted container, current and future.

    Only lines written after a container is attached are shipped.
    """

    def produce(emit: Emit, stopped: threading.Event) -> None:
        client = client_factory()

        def follow(container: Any, name: str, image: str) -> None:
            _follow_logs(container, name, image, emit)

        watch_containers(client, container_filter, follow, stopped, kind="logs")

    async for record in threaded_source(produce, name="logs", maxsize=settings.max_pending):
        yield record


async def docker_stats_source(
    settings: ShipperSettings,
    container_filter: ContainerFilter,
    client_factory: ClientFactory = docker.from_env,
) -> AsyncIterator[StatsRecord]:
    """Sample each accepted container's stats every ``stats_interval`` seconds."""

    def produce(emit: Emit, stopped: threading.Event) -> None:
        client = client_factory()

        def sample(container: Any, name: str, image: str) -> None:
            _sample_stats(container, name, image, emit, settings.stats_interval)

        watch_containers(client, container_filter, sample, stopped, kind="stats")

    async for record in threaded_source(produce, name="stats", maxsize=settings.max_pending):
        yield record


async def docker_event_source(
    settings: ShipperSettings,
    client_factory: ClientFactory = docker.from_env,
) -> AsyncIterator[EventRecord]:
    """Forward every event reported by the Docker daemon."""

    def produce(emit: Emit, stopped: threading.Event) -> None:
        client = client_factory()
        for event in client.events(decode=True):
            if stopped.is_set():
                return
            emit(EventRecord(payload=event))

    async for record in threaded_source(produce, name="events", maxsize=settings.max_pending):
        yield record
