"""Connection state machine for the Smaart session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class ConnectionState(enum.Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    AUTHENTICATING = "AUTHENTICATING"
    READY = "READY"
    CONNECTION_LOST = "CONNECTION_LOST"
    RECONNECT_PENDING = "RECONNECT_PENDING"
    CLOSED = "CLOSED"


_ALLOWED: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.IDLE: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {
        ConnectionState.READY,
        ConnectionState.CONNECTION_LOST,
        ConnectionState.CLOSED,
    },
    ConnectionState.READY: {
        ConnectionState.AUTHENTICATING,
        ConnectionState.CONNECTION_LOST,
        ConnectionState.CLOSED,
    },
    ConnectionState.AUTHENTICATING: {
        ConnectionState.READY,
        ConnectionState.CONNECTION_LOST,
        ConnectionState.CLOSED,
    },
    ConnectionState.CONNECTION_LOST: {ConnectionState.RECONNECT_PENDING, ConnectionState.CLOSED},
    ConnectionState.RECONNECT_PENDING: {ConnectionState.CONNECTING, ConnectionState.CLOSED},
    ConnectionState.CLOSED: {ConnectionState.CONNECTING},
}


@dataclass
class StateTracker:
    """Current connection state plus when it was entered."""

    state: ConnectionState = ConnectionState.IDLE
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: ConnectionState) -> None:
        """Move into ``next_state``, validating allowed transitions."""

        if next_state not in _ALLOWED.get(self.state, set()):
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    def can_transition(self, next_state: ConnectionState) -> bool:
        return next_state in _ALLOWED.get(self.state, set())
