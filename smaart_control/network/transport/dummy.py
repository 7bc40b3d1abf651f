"""In-memory transport for offline runs and tests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Union

from .base import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    BaseTransport,
    TransportClosedError,
    TransportNotConnected,
    TransportState,
)

LOGGER = logging.getLogger(__name__)


class DummyTransport(BaseTransport):
    """Records outbound frames and replays injected inbound ones."""

    def __init__(self, url: str = "ws://dummy/api/v3/", *, connect_error: Optional[Exception] = None) -> None:
        self.url = url
        self.sent: list[str] = []
        self._connect_error = connect_error
        self._inbound: asyncio.Queue[Union[str, bytes, Exception]] = asyncio.Queue()
        self._state = TransportState.CONNECTING

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def sent_payloads(self) -> list[dict[str, Any]]:
        return [json.loads(item) for item in self.sent]

    async def connect(self) -> None:
        LOGGER.debug("Dummy transport connect(%s)", self.url)
        if self._connect_error is not None:
            self._state = TransportState.CLOSED
            raise self._connect_error
        self._state = TransportState.OPEN

    async def send(self, text: str) -> None:
        if self._state is not TransportState.OPEN:
            raise TransportNotConnected("Dummy transport not open")
        LOGGER.debug("Dummy transport send(): %s", text)
        self.sent.append(text)

    async def receive(self) -> Union[str, bytes]:
        item = await self._inbound.get()
        if isinstance(item, TransportClosedError):
            self._state = TransportState.CLOSED
            raise item
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        LOGGER.debug("Dummy transport close(%s)", code)
        if self._state is TransportState.CLOSED:
            return
        self._state = TransportState.CLOSED
        self._inbound.put_nowait(TransportClosedError(code, "closed by client"))

    def feed(self, frame: Union[str, bytes, dict[str, Any]]) -> None:
        """Queue an inbound frame; dicts are JSON-encoded, bytes pass through as binary frames."""

        self._inbound.put_nowait(frame if isinstance(frame, (str, bytes)) else json.dumps(frame))

    def fail(self, error: Exception) -> None:
        """Make the next ``receive`` raise ``error`` without closing the transport."""

        self._inbound.put_nowait(error)

    def drop(self, code: int = ABNORMAL_CLOSURE, reason: str = "") -> None:
        """Simulate the server going away."""

        self._inbound.put_nowait(TransportClosedError(code, reason))
