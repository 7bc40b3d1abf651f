"""Tagged transport events consumed by the connection manager."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from smaart_control.network.transport.base import BaseTransport


@dataclass(frozen=True)
class TransportOpened:
    transport: BaseTransport


@dataclass(frozen=True)
class TransportFailed:
    transport: BaseTransport
    error: Exception


@dataclass(frozen=True)
class TransportClosed:
    transport: BaseTransport
    code: int
    reason: str


@dataclass(frozen=True)
class FrameReceived:
    transport: BaseTransport
    raw: Union[str, bytes]


TransportEvent = Union[TransportOpened, TransportFailed, TransportClosed, FrameReceived]
