"""Record sources — independent producers of typed records.

A source is any async iterable of records.  The shipper receives a mapping
of channel to *source factory* (a zero-argument callable returning the
iterable) and only calls the factories for channels it actually starts.
Each source ends on its own; the shipper tears the sink down once all of
them have ended.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Callable

import docker

from docker_logentries.config import ShipperSettings
from docker_logentries.models.records import RecordBase
from docker_logentries.models.routing import Channel
from docker_logentries.sources.containers import ContainerFilter
from docker_logentries.sources.daemon import (
    ClientFactory,
    docker_event_source,
    docker_log_source,
    docker_stats_source,
)

RecordSource = AsyncIterable[RecordBase]
SourceFactory = Callable[[], RecordSource]


def docker_sources(
    settings: ShipperSettings,
    client_factory: ClientFactory = docker.from_env,
) -> dict[Channel, SourceFactory]:
    """Return Docker-backed source factories for all three channels.

    Container filters are compiled here, so an invalid pattern raises
    ``ConfigurationError`` before anything connects.
    """
    container_filter = ContainerFilter.from_settings(settings)
    return {
        Channel.LOGS: lambda: docker_log_source(settings, container_filter, client_factory),
        Channel.STATS: lambda: docker_stats_source(settings, container_filter, client_factory),
        Channel.EVENTS: lambda: docker_event_source(settings, client_factory),
    }


__all__ = ["RecordSource", "SourceFactory", "docker_sources"]
