"""Runtime configuration — env-driven, CLI-overridable.

Centralized config using pydantic-settings.  Reads from a .env file and
LOGENTRIES_* environment variables (the same variables the shipper has
always honoured); command-line options override both.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import Any

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from docker_logentries.models.routing import Channel, LabelRule, RoutingTable, TokenRule

DEFAULT_SERVER = "data.logentries.com"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ConfigurationError(RuntimeError):
    """Raised when the configuration cannot start a shipper.

    Covers a configuration with no usable channel or token, malformed
    ``KEY=VALUE`` arguments, and invalid patterns.  It is raised before any
    connection attempt and must terminate the process.
    """


class ShipperSettings(BaseSettings):
    """Shipper configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export LOGENTRIES_TOKEN=2bfbea1e-10c3-4419-bdad-7e6435882e1f
        export LOGENTRIES_STATSTOKEN=...
        export LOGENTRIES_SECURE=true

    Per-channel tokens fall back to ``token`` when unset.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LOGENTRIES_",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    # Tokens
    token: str = ""
    logs_token: str = Field(
        "", validation_alias=AliasChoices("logentries_logstoken", "logentries_logs_token")
    )
    stats_token: str = Field(
        "", validation_alias=AliasChoices("logentries_statstoken", "logentries_stats_token")
    )
    events_token: str = Field(
        "", validation_alias=AliasChoices("logentries_eventstoken", "logentries_events_token")
    )
    token_by_match: list[TokenRule] = []

    # Endpoint
    secure: bool = False
    server: str = DEFAULT_SERVER
    port: int | None = Field(None, ge=1, le=65535)

    # Channels
    logs: bool = True
    stats: bool = True
    docker_events: bool = True
    stats_interval: float = Field(30.0, gt=0)

    # Formatting
    log_label_regexp: str | None = None
    log_label_template: str = "{0}"
    add: dict[str, str] = {}

    # Container selection for the log and stats sources
    match_by_image: str | None = None
    match_by_name: str | None = None
    skip_by_image: str | None = None
    skip_by_name: str | None = None

    # Sink behaviour
    max_pending: int = Field(1024, ge=1)
    reconnect_delay: float = Field(0.0, ge=0)
    connect_timeout: float | None = Field(None, gt=0)
    flush_timeout: float | None = Field(5.0, ge=0)

    # Observability
    log_level: str = "INFO"

    @property
    def resolved_port(self) -> int:
        """The configured port, or 443/80 depending on ``secure``."""
        if self.port is not None:
            return self.port
        return 443 if self.secure else 80

    @property
    def effective_logs_token(self) -> str:
        return self.logs_token or self.token

    @property
    def effective_stats_token(self) -> str:
        return self.stats_token or self.token

    @property
    def effective_events_token(self) -> str:
        return self.events_token or self.token

    def enabled_channels(self) -> list[Channel]:
        """Return the channels that have both a switch and a token.

        The logs channel also runs when only image-based token rules are
        configured, since those can route records without a fallback token.
        """
        channels: list[Channel] = []
        if self.logs and (self.effective_logs_token or self.token_by_match):
            channels.append(Channel.LOGS)
        if self.stats and self.effective_stats_token:
            channels.append(Channel.STATS)
        if self.docker_events and self.effective_events_token:
            channels.append(Channel.EVENTS)
        return channels

    def routing_table(self) -> RoutingTable:
        """Build the routing table consumed by the record router."""
        label_rule = None
        if self.log_label_regexp:
            label_rule = LabelRule(
                pattern=self.log_label_regexp,
                template=self.log_label_template,
            )
        return RoutingTable(
            rules=list(self.token_by_match),
            label_rule=label_rule,
            logs_token=self.effective_logs_token,
            stats_token=self.effective_stats_token,
            events_token=self.effective_events_token,
        )


def load_settings(**overrides: Any) -> ShipperSettings:
    """Build settings from the environment plus explicit *overrides*.

    ``None`` overrides are ignored so unset CLI options fall through to the
    environment.  Validation failures surface as ``ConfigurationError``.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return ShipperSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _split_pair(arg: str, *, last: bool) -> tuple[str, str]:
    key, sep, value = arg.rpartition("=") if last else arg.partition("=")
    if not sep or not key:
        raise ConfigurationError(f"Expected KEY=VALUE, got {arg!r}")
    return key, value


def parse_key_values(args: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` arguments; the value may itself contain ``=``."""
    pairs: dict[str, str] = {}
    for arg in args:
        key, value = _split_pair(arg, last=False)
        pairs[key] = value
    return pairs


def parse_token_rules(args: Iterable[str]) -> list[TokenRule]:
    """Parse ``REGEX=TOKEN`` arguments, keeping their order.

    Splits on the last ``=`` because tokens never contain one while
    patterns may.
    """
    rules: list[TokenRule] = []
    for arg in args:
        pattern, token = _split_pair(arg, last=True)
        rules.append(TokenRule(pattern=pattern, token=token))
    return rules


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once, writing to stderr."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigurationError(f"Unknown log level {level!r}")
    logging.basicConfig(level=numeric, stream=sys.stderr, format=LOG_FORMAT)
