"""Persistent-session client for the Smaart v3 remote-control API."""

from smaart_control.config import ClientSettings, get_settings
from smaart_control.network import ConnectionManager, ConnectionState
from smaart_control.status import InstanceStatus, StatusTracker

__version__ = "0.1.0"

__all__ = [
    "ClientSettings",
    "ConnectionManager",
    "ConnectionState",
    "InstanceStatus",
    "StatusTracker",
    "get_settings",
]
