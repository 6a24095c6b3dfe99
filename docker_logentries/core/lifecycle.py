"""Lifecycle coordinator — tears the sink down once every source has ended."""

from __future__ import annotations

import logging
from typing import Protocol

from docker_logentries.config import ConfigurationError

logger = logging.getLogger(__name__)


class SupportsTeardown(Protocol):
    """The one capability the coordinator needs from the sink."""

    async def teardown(self, flush_timeout: float | None = None) -> None: ...


class LifecycleCoordinator:
    """Counts active sources and issues exactly one sink teardown.

    Parameters
    ----------
    active_sources:
        Number of sources actually started.  Zero is a configuration error.
    sink:
        The sink to tear down when the last source ends.
    flush_timeout:
        Forwarded to ``sink.teardown``.

    Raises
    ------
    ConfigurationError
        If *active_sources* is not positive.
    """

    def __init__(
        self,
        active_sources: int,
        sink: SupportsTeardown,
        *,
        flush_timeout: float | None = None,
    ) -> None:
        if active_sources <= 0:
            raise ConfigurationError(
                "You should enable at least one of stats, logs or docker events "
                "and give it a token"
            )
        self._remaining = active_sources
        self._sink = sink
        self._flush_timeout = flush_timeout
        self._torn_down = False

    @property
    def remaining(self) -> int:
        """Sources that have not ended yet."""
        return self._remaining

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    async def source_ended(self, name: str) -> None:
        """Record that source *name* has ended; tear down after the last one."""
        if self._torn_down:
            logger.debug("Source %s ended after teardown; ignored", name)
            return

        self._remaining -= 1
        logger.info("Source %s ended (%d still active)", name, self._remaining)
        if self._remaining > 0:
            return

        # Flag before awaiting so a concurrent end cannot tear down twice.
        self._torn_down = True
        await self._sink.teardown(flush_timeout=self._flush_timeout)
