"""Typed telemetry records — one frozen model per record kind.

The record kind is decided once, by the producer, and carried in the
``kind`` discriminator.  Nothing downstream inspects field presence to work
out what a record is.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RecordKind(str, Enum):
    """The three record variants a source can emit."""

    LOG = "log"
    STATS = "stats"
    EVENT = "event"


class RecordBase(BaseModel):
    """Fields shared by every record.

    ``tags`` holds the extra key/value pairs merged in from configuration
    (``--add KEY=VALUE``) before the record is routed.
    """

    model_config = ConfigDict(frozen=True)

    kind: RecordKind
    tags: dict[str, str] = {}

    def with_tags(self, tags: Mapping[str, str]) -> RecordBase:
        """Return a copy with *tags* merged in; configured keys win."""
        if not tags:
            return self
        return self.model_copy(update={"tags": {**self.tags, **tags}})


class LogRecord(RecordBase):
    """One line written by a container to stdout or stderr."""

    kind: Literal[RecordKind.LOG] = RecordKind.LOG
    time: datetime
    container_name: str
    image: str
    line: str

    @field_validator("time", mode="before")
    @classmethod
    def _epoch_millis(cls, value: Any) -> Any:
        # Integers and floats are epoch milliseconds, as the log tailer reports them.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            millis = int(value)
            return _EPOCH + timedelta(milliseconds=millis)
        return value

    @field_validator("time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class StatsRecord(RecordBase):
    """A resource-usage snapshot for one container."""

    kind: Literal[RecordKind.STATS] = RecordKind.STATS
    payload: dict[str, Any]


class EventRecord(RecordBase):
    """A lifecycle event reported by the Docker daemon."""

    kind: Literal[RecordKind.EVENT] = RecordKind.EVENT
    payload: dict[str, Any]
