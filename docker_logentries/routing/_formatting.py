"""Shared formatting helpers for routed lines."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def iso_millis(ts: datetime) -> str:
    """Render *ts* as UTC ISO-8601 with millisecond precision.

    Examples
    --------
    >>> from datetime import datetime, timezone
    >>> iso_millis(datetime(2021, 5, 3, tzinfo=timezone.utc))
    '2021-05-03T00:00:00.000Z'
    """
    utc = ts.astimezone(timezone.utc)
    return f"{utc:%Y-%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z"


def compact_json(obj: Any) -> str:
    """Serialize *obj* as single-line JSON with no whitespace.

    Key order is preserved and non-ASCII text is kept as-is.  Values JSON
    cannot represent natively (datetimes, for instance) fall back to ``str``.
    """
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str)
