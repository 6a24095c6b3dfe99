"""Routing models — token rules, label rules, and routed output lines."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Channel(str, Enum):
    """The three source channels a shipper can run."""

    LOGS = "logs"
    STATS = "stats"
    EVENTS = "events"


class TokenRule(BaseModel):
    """Route log records whose image name matches *pattern* to *token*.

    Rules are evaluated in order and the first match wins.  Matching uses
    search semantics, so ``nginx`` matches ``library/nginx:1.25``.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str
    token: str


class LabelRule(BaseModel):
    """Derive a display label from a container name.

    The pattern is matched case-insensitively.  On a match the template is
    rendered with :meth:`str.format`: ``{0}`` is the whole match, ``{1}``
    onwards are the captured groups, and named groups are available by
    name.  Names that do not match are used as-is.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str
    template: str = "{0}"


class RoutingTable(BaseModel):
    """Everything the record router needs to pick a token and a label."""

    model_config = ConfigDict(frozen=True)

    rules: list[TokenRule] = []
    label_rule: LabelRule | None = None
    logs_token: str = ""
    stats_token: str = ""
    events_token: str = ""


class RoutedLine(BaseModel):
    """A record that resolved to a token, ready for the wire."""

    model_config = ConfigDict(frozen=True)

    token: str
    line: str

    def wire_bytes(self) -> bytes:
        """Encode as ``<token> <line>\\n``."""
        return f"{self.token} {self.line}\n".encode("utf-8")
