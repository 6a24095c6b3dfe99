"""docker-logentries data models — all Pydantic v2, all frozen (immutable)."""

from docker_logentries.models.connection import VALID_TRANSITIONS, ConnectionState
from docker_logentries.models.records import (
    EventRecord,
    LogRecord,
    RecordBase,
    RecordKind,
    StatsRecord,
)
from docker_logentries.models.routing import (
    Channel,
    LabelRule,
    RoutedLine,
    RoutingTable,
    TokenRule,
)

__all__ = [
    "Channel",
    "ConnectionState",
    "EventRecord",
    "LabelRule",
    "LogRecord",
    "RecordBase",
    "RecordKind",
    "RoutedLine",
    "RoutingTable",
    "StatsRecord",
    "TokenRule",
    "VALID_TRANSITIONS",
]
