"""Transport abstraction for the Smaart API connection."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Union

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class TransportState(enum.Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


class TransportClosedError(RuntimeError):
    """Raised by ``receive`` once the connection has been closed."""

    def __init__(self, code: int = ABNORMAL_CLOSURE, reason: str = "") -> None:
        super().__init__(f"connection closed ({code}){f': {reason}' if reason else ''}")
        self.code = code
        self.reason = reason


class TransportNotConnected(RuntimeError):
    """Raised when IO is attempted before the transport is open."""


class BaseTransport(ABC):
    """Abstract text-message transport used by the connection manager."""

    @property
    @abstractmethod
    def state(self) -> TransportState:
        ...

    @property
    def is_open(self) -> bool:
        return self.state is TransportState.OPEN

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, text: str) -> None:
        ...

    @abstractmethod
    async def receive(self) -> Union[str, bytes]:
        """Return the next text or binary frame; binary frames are not decoded."""
        ...

    @abstractmethod
    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        ...
