"""Sink connection state model — explicit, table-driven transitions."""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """States of the outbound sink connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TORN_DOWN = "torn_down"


# Valid state transitions — enforced by SinkConnectionManager.
# TORN_DOWN is terminal and reachable only through teardown.
VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING, ConnectionState.TORN_DOWN},
    ConnectionState.CONNECTING: {
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
        ConnectionState.TORN_DOWN,
    },
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED, ConnectionState.TORN_DOWN},
    ConnectionState.TORN_DOWN: set(),  # terminal
}
