"""Transport implementations for the Smaart API connection."""

from .base import (
    BaseTransport,
    TransportClosedError,
    TransportNotConnected,
    TransportState,
)
from .dummy import DummyTransport
from .websocket import WebSocketTransport

__all__ = [
    "BaseTransport",
    "DummyTransport",
    "TransportClosedError",
    "TransportNotConnected",
    "TransportState",
    "WebSocketTransport",
]
