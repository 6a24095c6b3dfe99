"""RecordRouter — turns typed records into ``(token, line)`` pairs.

Every record either resolves to a token and a formatted line or is dropped.
Token and label lookups for log records are memoized per router instance:
the first computation for an image or a container name is authoritative.
"""

from __future__ import annotations

import logging
import re

from docker_logentries.config import ConfigurationError
from docker_logentries.models.records import EventRecord, LogRecord, RecordBase, StatsRecord
from docker_logentries.models.routing import RoutedLine, RoutingTable
from docker_logentries.routing._formatting import compact_json, iso_millis

logger = logging.getLogger(__name__)


def _compile(pattern: str, flags: int = 0) -> re.Pattern[str]:
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ConfigurationError(f"Invalid pattern {pattern!r}: {exc}") from exc


class RecordRouter:
    """Resolves a routing token and a formatted line for each record.

    All patterns are compiled in the constructor, so a bad pattern or label
    template fails at startup rather than on the first matching record.

    Parameters
    ----------
    table:
        The routing table: ordered image rules, the optional label rule and
        the per-channel tokens.

    Usage
    -----
    >>> router = RecordRouter(RoutingTable(stats_token="T2"))
    >>> router.route(StatsRecord(payload={"stats": {}})).line
    '{"stats":{}}'
    """

    def __init__(self, table: RoutingTable) -> None:
        self._table = table
        self._rules: list[tuple[re.Pattern[str], str]] = [
            (_compile(rule.pattern), rule.token) for rule in table.rules
        ]

        self._label: tuple[re.Pattern[str], str] | None = None
        if table.label_rule is not None:
            regexp = _compile(table.label_rule.pattern, re.IGNORECASE)
            self._check_template(regexp, table.label_rule.template)
            self._label = (regexp, table.label_rule.template)

        self._token_cache: dict[str, str] = {}
        self._label_cache: dict[str, str] = {}
        self._counters = {
            "token_hits": 0,
            "token_misses": 0,
            "label_hits": 0,
            "label_misses": 0,
        }

    @staticmethod
    def _check_template(regexp: re.Pattern[str], template: str) -> None:
        """Render *template* once with blanks for every group the pattern has."""
        positional = [""] * (regexp.groups + 1)
        named = {name: "" for name in regexp.groupindex}
        try:
            template.format(*positional, **named)
        except (IndexError, KeyError, ValueError) as exc:
            raise ConfigurationError(
                f"Label template {template!r} does not fit pattern "
                f"{regexp.pattern!r}: {exc!r}"
            ) from exc

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(self, record: RecordBase) -> RoutedLine | None:
        """Route one record.

        Returns ``None`` when no token resolves; the record is dropped
        without any other side effect.
        """
        if isinstance(record, LogRecord):
            token = self.resolve_token(record.image)
            if not token:
                return None
            label = self.resolve_label(record.container_name)
            return RoutedLine(
                token=token,
                line=f"{iso_millis(record.time)} {label} {record.line}",
            )

        if isinstance(record, StatsRecord):
            token = self._table.stats_token
        elif isinstance(record, EventRecord):
            token = self._table.events_token
        else:
            raise TypeError(f"Unroutable record type: {type(record).__name__}")

        if not token:
            return None
        return RoutedLine(token=token, line=compact_json({**record.payload, **record.tags}))

    def resolve_token(self, image: str) -> str:
        """Return the token for *image*: first matching rule, else the logs token."""
        cached = self._token_cache.get(image)
        if cached is not None:
            self._counters["token_hits"] += 1
            return cached

        self._counters["token_misses"] += 1
        token = self._table.logs_token
        for regexp, rule_token in self._rules:
            if regexp.search(image):
                token = rule_token
                break
        self._token_cache[image] = token
        return token

    def resolve_label(self, container_name: str) -> str:
        """Return the display label for *container_name*."""
        cached = self._label_cache.get(container_name)
        if cached is not None:
            self._counters["label_hits"] += 1
            return cached

        self._counters["label_misses"] += 1
        label = container_name
        if self._label is not None:
            regexp, template = self._label
            match = regexp.search(container_name)
            if match is not None:
                groups = [match.group(0)] + [g or "" for g in match.groups()]
                named = {k: v or "" for k, v in match.groupdict().items()}
                label = template.format(*groups, **named)
        self._label_cache[container_name] = label
        return label

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def cache_info(self) -> dict[str, int]:
        """Return hit/miss counters and current sizes of both caches."""
        return {
            **self._counters,
            "token_entries": len(self._token_cache),
            "label_entries": len(self._label_cache),
        }
