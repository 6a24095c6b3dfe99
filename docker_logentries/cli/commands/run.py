"""``docker-logentries run`` — ship logs, stats and events until the sources end."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from docker_logentries.bridge.transport import SecurityError
from docker_logentries.cli import options
from docker_logentries.config import ConfigurationError, configure_logging
from docker_logentries.core.shipper import Shipper
from docker_logentries.sources import docker_sources

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)


async def _ship(shipper: Shipper) -> None:
    """Run *shipper*, stopping it gracefully on SIGTERM or SIGINT."""
    loop = asyncio.get_running_loop()
    stopping: list[asyncio.Task] = []

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        if not stopping:
            stopping.append(loop.create_task(shipper.stop()))

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_signal)
        except NotImplementedError:
            logger.warning("Cannot install a handler for %s", sig.name)
    try:
        await shipper.run()
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, ValueError):
                pass
        if stopping:
            await asyncio.gather(*stopping)


def run_cmd(
    token: Optional[str] = options.TOKEN,
    logs_token: Optional[str] = options.LOGS_TOKEN,
    stats_token: Optional[str] = options.STATS_TOKEN,
    events_token: Optional[str] = options.EVENTS_TOKEN,
    token_by_match: Optional[List[str]] = options.TOKEN_BY_MATCH,
    secure: Optional[bool] = options.SECURE,
    server: Optional[str] = options.SERVER,
    port: Optional[int] = options.PORT,
    add: Optional[List[str]] = options.ADD,
    stats_interval: Optional[float] = options.STATS_INTERVAL,
    logs: Optional[bool] = options.LOGS,
    stats: Optional[bool] = options.STATS,
    docker_events: Optional[bool] = options.DOCKER_EVENTS,
    log_label_regexp: Optional[str] = options.LABEL_REGEXP,
    log_label_template: Optional[str] = options.LABEL_TEMPLATE,
    match_by_image: Optional[str] = options.MATCH_BY_IMAGE,
    match_by_name: Optional[str] = options.MATCH_BY_NAME,
    skip_by_image: Optional[str] = options.SKIP_BY_IMAGE,
    skip_by_name: Optional[str] = options.SKIP_BY_NAME,
    log_level: Optional[str] = options.LOG_LEVEL,
) -> None:
    """Forward Docker logs, stats and events to the ingestion endpoint.

    Exits 1 on a configuration error and 2 when the TLS peer is not
    authorized.
    """
    try:
        settings = options.build_settings(
            token=token,
            logs_token=logs_token,
            stats_token=stats_token,
            events_token=events_token,
            token_by_match=token_by_match,
            secure=secure,
            server=server,
            port=port,
            add=add,
            stats_interval=stats_interval,
            logs=logs,
            stats=stats,
            docker_events=docker_events,
            log_label_regexp=log_label_regexp,
            log_label_template=log_label_template,
            match_by_image=match_by_image,
            match_by_name=match_by_name,
            skip_by_image=skip_by_image,
            skip_by_name=skip_by_name,
            log_level=log_level,
        )
        configure_logging(settings.log_level)
        shipper = Shipper(settings, docker_sources(settings))
    except ConfigurationError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    try:
        asyncio.run(_ship(shipper))
    except SecurityError as exc:
        logger.error("Fatal: %s", exc)
        err_console.print(f"[red]Security error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    except KeyboardInterrupt:
        logger.info("Interrupted")
        raise typer.Exit(code=130) from None
