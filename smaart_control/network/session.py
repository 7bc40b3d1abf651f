"""State owned by the single logical connection to the Smaart API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from smaart_control.network.sequence import SequenceAllocator
from smaart_control.network.session_state import ConnectionState, StateTracker
from smaart_control.network.timers import OneShotTimer
from smaart_control.network.transport.base import BaseTransport

API_PATH = "/api/v3/"


def build_url(host: str, port: Union[str, int]) -> str:
    """Return the API endpoint URL; raises ``ValueError`` for a non-numeric port."""

    number = int(str(port).strip())
    if not 0 < number < 65536:
        raise ValueError(f"port out of range: {port}")
    return f"ws://{host}:{number}{API_PATH}"


@dataclass
class Session:
    host: Optional[str] = None
    port: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    transport: Optional[BaseTransport] = None
    closing: bool = False
    retry: bool = True
    reconnect: OneShotTimer = field(default_factory=lambda: OneShotTimer("reconnect"))
    keepalive: OneShotTimer = field(default_factory=lambda: OneShotTimer("keepalive"))
    sequence: SequenceAllocator = field(default_factory=SequenceAllocator)
    tracker: StateTracker = field(default_factory=StateTracker)

    @property
    def state(self) -> ConnectionState:
        return self.tracker.state

    def move_to(self, state: ConnectionState) -> None:
        if self.tracker.state is not state:
            self.tracker.transition(state)
