"""``docker-logentries check`` — validate options and show the routing setup.

Builds the same settings and router as ``run`` but never connects anywhere.
"""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docker_logentries.cli import options
from docker_logentries.config import ConfigurationError, ShipperSettings
from docker_logentries.models.routing import Channel
from docker_logentries.routing.router import RecordRouter
from docker_logentries.sources.containers import ContainerFilter

console = Console()


def mask(token: str) -> str:
    """Show only the first four characters of a token."""
    if not token:
        return "[dim]-[/dim]"
    return f"{token[:4]}****"


def _render(settings: ShipperSettings) -> None:
    enabled = settings.enabled_channels()
    channel_tokens = {
        Channel.LOGS: settings.effective_logs_token,
        Channel.STATS: settings.effective_stats_token,
        Channel.EVENTS: settings.effective_events_token,
    }

    channels = Table(title="Channels")
    channels.add_column("Channel", style="cyan")
    channels.add_column("Token")
    channels.add_column("Enabled", justify="center")
    for channel, token in channel_tokens.items():
        on = "[green]Yes[/green]" if channel in enabled else "[red]No[/red]"
        channels.add_row(channel.value, mask(token), on)
    console.print(channels)

    if settings.token_by_match:
        rules = Table(title="Token rules (first match wins)")
        rules.add_column("#", justify="right")
        rules.add_column("Image pattern", style="cyan")
        rules.add_column("Token")
        for index, rule in enumerate(settings.token_by_match, start=1):
            rules.add_row(str(index), escape(rule.pattern), mask(rule.token))
        console.print(rules)

    scheme = "tls" if settings.secure else "tcp"
    console.print(f"[bold]Endpoint:[/bold] {scheme}://{settings.server}:{settings.resolved_port}")
    if settings.log_label_regexp:
        console.print(
            f"[bold]Label rule:[/bold] /{escape(settings.log_label_regexp)}/i -> "
            f"{escape(settings.log_label_template)}"
        )
    if settings.add:
        tags = ", ".join(f"{escape(k)}={escape(v)}" for k, v in settings.add.items())
        console.print(f"[bold]Tags:[/bold] {tags}")


def check_cmd(
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
    """Validate the configuration without connecting.  Exits 1 if invalid."""
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
        RecordRouter(settings.routing_table())
        ContainerFilter.from_settings(settings)
        if not settings.enabled_channels():
            raise ConfigurationError(
                "You should enable at least one of stats, logs or docker events "
                "and give it a token"
            )
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    _render(settings)
    console.print("[bold green]Configuration OK.[/bold green]")
