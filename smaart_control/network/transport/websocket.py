"""WebSocket transport implementation."""

from __future__ import annotations

import logging
from typing import Optional, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from .base import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    BaseTransport,
    TransportClosedError,
    TransportNotConnected,
    TransportState,
)

LOGGER = logging.getLogger(__name__)

_STATES = {
    State.CONNECTING: TransportState.CONNECTING,
    State.OPEN: TransportState.OPEN,
    State.CLOSING: TransportState.CLOSING,
    State.CLOSED: TransportState.CLOSED,
}


class WebSocketTransport(BaseTransport):
    """WebSocket client transport for the Smaart API server."""

    def __init__(self, url: str, *, open_timeout: Optional[float] = 10.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: Optional[ClientConnection] = None
        self._state = TransportState.CONNECTING

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> TransportState:
        if self._ws is None:
            return self._state
        return _STATES[self._ws.state]

    async def connect(self) -> None:
        LOGGER.info("Connecting to Smaart WebSocket at %s", self._url)
        try:
            self._ws = await connect(self._url, open_timeout=self._open_timeout)
        except Exception:
            self._state = TransportState.CLOSED
            raise

    async def send(self, text: str) -> None:
        if not self._ws:
            raise TransportNotConnected("WebSocket transport not connected")
        LOGGER.debug("WebSocket send: %s", text)
        try:
            await self._ws.send(text)
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc

    async def receive(self) -> Union[str, bytes]:
        if not self._ws:
            raise TransportNotConnected("WebSocket transport not connected")
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc
        LOGGER.debug("WebSocket receive: %s", raw)
        return raw

    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        if self._ws:
            LOGGER.info("Closing WebSocket transport")
            await self._ws.close(code=code)
        self._state = TransportState.CLOSED


def _closed_error(exc: ConnectionClosed) -> TransportClosedError:
    frame = exc.rcvd
    if frame is None:
        return TransportClosedError(ABNORMAL_CLOSURE, "")
    return TransportClosedError(frame.code, frame.reason)
