"""Network stack (transport/session/queue/manager) for the Smaart API."""

from smaart_control.network.command_queue import CommandQueue, QueueTask
from smaart_control.network.manager import ConnectionManager
from smaart_control.network.sequence import SequenceAllocator
from smaart_control.network.session import Session, build_url
from smaart_control.network.session_state import ConnectionState, StateTracker
from smaart_control.network.timers import OneShotTimer
from smaart_control.network.transport import BaseTransport, DummyTransport, WebSocketTransport

__all__ = [
    "BaseTransport",
    "CommandQueue",
    "ConnectionManager",
    "ConnectionState",
    "DummyTransport",
    "OneShotTimer",
    "QueueTask",
    "SequenceAllocator",
    "Session",
    "StateTracker",
    "WebSocketTransport",
    "build_url",
]
