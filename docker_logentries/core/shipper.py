"""Shipper — the central coordinator for a docker-logentries process.

The Shipper wires together the RecordRouter, the SinkConnectionManager and
the LifecycleCoordinator, then pumps every enabled source through the router
into the sink.

Startup order matters: channels are selected and patterns compiled before
the first connection attempt, so configuration errors never touch the
network.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from docker_logentries.bridge.transport import Connector, TcpConnector
from docker_logentries.config import ShipperSettings
from docker_logentries.core.lifecycle import LifecycleCoordinator
from docker_logentries.core.sink_manager import SinkConnectionManager
from docker_logentries.models.routing import Channel
from docker_logentries.routing.router import RecordRouter
from docker_logentries.sources import RecordSource, SourceFactory

logger = logging.getLogger(__name__)


class Shipper:
    """Multiplexes the enabled sources into one outbound connection.

    Parameters
    ----------
    settings:
        Validated shipper settings.
    sources:
        Source factory per channel.  Only factories for enabled channels
        are called.
    connector:
        Opens sink connections.  Defaults to a ``TcpConnector`` built from
        the settings.

    Raises
    ------
    ConfigurationError
        If no channel can be started or a pattern is invalid.
    """

    def __init__(
        self,
        settings: ShipperSettings,
        sources: Mapping[Channel, SourceFactory],
        *,
        connector: Connector | None = None,
    ) -> None:
        self.settings = settings
        self._sources = sources

        self.channels: list[Channel] = []
        for channel in settings.enabled_channels():
            if channel in sources:
                self.channels.append(channel)
            else:
                logger.warning("Channel %s is enabled but has no source", channel.value)

        self.router = RecordRouter(settings.routing_table())
        self.sink = SinkConnectionManager(
            connector
            or TcpConnector(
                settings.server, settings.resolved_port, secure=settings.secure
            ),
            max_pending=settings.max_pending,
            reconnect_delay=settings.reconnect_delay,
            connect_timeout=settings.connect_timeout,
        )
        self.lifecycle = LifecycleCoordinator(
            len(self.channels), self.sink, flush_timeout=settings.flush_timeout
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Ship records until every source has ended.

        Raises
        ------
        SecurityError
            If the sink's TLS peer is not authorized.
        """
        logger.info(
            "Shipping %s to %s:%d%s",
            ", ".join(c.value for c in self.channels),
            self.settings.server,
            self.settings.resolved_port,
            " (TLS)" if self.settings.secure else "",
        )
        supervisor = asyncio.create_task(self.sink.run(), name="sink-supervisor")
        pumps = [
            asyncio.create_task(
                self._pump(channel, self._sources[channel]()),
                name=f"source-{channel.value}",
            )
            for channel in self.channels
        ]
        try:
            await supervisor
        except BaseException:
            for task in (*pumps, supervisor):
                task.cancel()
            await asyncio.gather(*pumps, supervisor, return_exceptions=True)
            raise

        # stop() tears the sink down while sources may still be running.
        if not self.lifecycle.torn_down:
            for pump in pumps:
                pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        logger.info("Shipper stopped")

    async def _pump(self, channel: Channel, source: RecordSource) -> None:
        tags = self.settings.add
        try:
            async for record in source:
                routed = self.router.route(record.with_tags(tags))
                if routed is not None:
                    await self.sink.send(routed.wire_bytes())
        except Exception:  # noqa: BLE001
            logger.exception("Source %s failed", channel.value)
        await self.lifecycle.source_ended(channel.value)

    async def stop(self) -> None:
        """Flush and tear the sink down without waiting for the sources."""
        logger.info("Stop requested; %d record(s) pending", self.sink.pending)
        await self.sink.teardown(flush_timeout=self.settings.flush_timeout)
