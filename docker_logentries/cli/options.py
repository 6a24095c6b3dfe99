"""Shared Typer options for ``run`` and ``check``, and settings assembly."""

from __future__ import annotations

from typing import List, Optional

import typer

from docker_logentries.config import (
    ShipperSettings,
    load_settings,
    parse_key_values,
    parse_token_rules,
)

TOKEN = typer.Option(None, "--token", "-t", help="Token used by every channel without its own.")
LOGS_TOKEN = typer.Option(None, "--logstoken", "-l", help="Token for container logs.")
STATS_TOKEN = typer.Option(None, "--statstoken", "-k", help="Token for container stats.")
EVENTS_TOKEN = typer.Option(None, "--eventstoken", "-e", help="Token for Docker events.")
TOKEN_BY_MATCH = typer.Option(
    None,
    "--token-by-match",
    "-r",
    help="IMAGE_NAME_REGEX=TOKEN; route matching images' logs to TOKEN. Repeatable, first match wins.",
)
SECURE = typer.Option(None, "--secure/--insecure", "-s", help="Connect over TLS.")
SERVER = typer.Option(None, "--server", help="Ingestion endpoint hostname.")
PORT = typer.Option(None, "--port", help="Endpoint port (default 443 with --secure, else 80).")
ADD = typer.Option(None, "--add", "-a", help="KEY=VALUE tag merged into every record. Repeatable.")
STATS_INTERVAL = typer.Option(None, "--statsinterval", "-i", help="Seconds between stats samples.")
LOGS = typer.Option(None, "--logs/--no-logs", help="Ship container logs.")
STATS = typer.Option(None, "--stats/--no-stats", help="Ship container stats.")
DOCKER_EVENTS = typer.Option(None, "--docker-events/--no-docker-events", help="Ship Docker events.")
LABEL_REGEXP = typer.Option(
    None, "--log-label-regexp", help="Case-insensitive pattern applied to container names."
)
LABEL_TEMPLATE = typer.Option(
    None,
    "--log-label-template",
    help="Label template; {0} is the whole match, {1}.. the groups.",
)
MATCH_BY_IMAGE = typer.Option(None, "--match-by-image", help="Only containers whose image matches.")
MATCH_BY_NAME = typer.Option(None, "--match-by-name", help="Only containers whose name matches.")
SKIP_BY_IMAGE = typer.Option(None, "--skip-by-image", help="Skip containers whose image matches.")
SKIP_BY_NAME = typer.Option(None, "--skip-by-name", help="Skip containers whose name matches.")
LOG_LEVEL = typer.Option(None, "--log-level", help="Diagnostic log level (DEBUG, INFO, ...).")


def build_settings(
    *,
    token: Optional[str],
    logs_token: Optional[str],
    stats_token: Optional[str],
    events_token: Optional[str],
    token_by_match: Optional[List[str]],
    secure: Optional[bool],
    server: Optional[str],
    port: Optional[int],
    add: Optional[List[str]],
    stats_interval: Optional[float],
    logs: Optional[bool],
    stats: Optional[bool],
    docker_events: Optional[bool],
    log_label_regexp: Optional[str],
    log_label_template: Optional[str],
    match_by_image: Optional[str],
    match_by_name: Optional[str],
    skip_by_image: Optional[str],
    skip_by_name: Optional[str],
    log_level: Optional[str],
) -> ShipperSettings:
    """Merge CLI values over the environment.  Raises ``ConfigurationError``."""
    return load_settings(
        token=token,
        logs_token=logs_token,
        stats_token=stats_token,
        events_token=events_token,
        token_by_match=parse_token_rules(token_by_match) if token_by_match else None,
        secure=secure,
        server=server,
        port=port,
        add=parse_key_values(add) if add else None,
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
