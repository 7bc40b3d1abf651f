"""Single-slot, interval-gated dispatcher for outbound commands."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from smaart_control.network.sequence import SequenceAllocator
from smaart_control.protocol.models import CommandRequest

LOGGER = logging.getLogger(__name__)

Sender = Callable[[Dict[str, Any]], Awaitable[bool]]


@dataclass
class QueueTask:
    payload: Dict[str, Any]
    done: asyncio.Future[bool]
    epoch: int


class CommandQueue:
    """Transmits queued payloads one at a time, at most one per ``interval``.

    ``send`` returns whether the payload reached the transport. Tasks run in
    submission order; the gate only delays, it never reorders.
    """

    def __init__(
        self,
        send: Sender,
        *,
        sequence: SequenceAllocator,
        interval: float = 0.01,
        on_sent: Optional[Callable[[], None]] = None,
    ) -> None:
        self._send = send
        self._sequence = sequence
        self._interval = float(interval)
        self._on_sent = on_sent
        self._pending: asyncio.Queue[QueueTask] = asyncio.Queue()
        self._worker: Optional[asyncio.Task[None]] = None
        self._epoch = 0
        self._last_sent_at: Optional[float] = None

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        self._interval = float(value)

    def __len__(self) -> int:
        return self._pending.qsize()

    def enqueue(
        self,
        request: Union[CommandRequest, Dict[str, Any]],
        *,
        sequenced: bool = True,
    ) -> asyncio.Future[bool]:
        """Queue ``request`` and return a future resolved once it was dispatched.

        The future resolves ``True`` when the payload was handed to the
        transport and ``False`` when it was dropped or cleared. It says
        nothing about whether the server processed it.
        """

        payload = request.to_payload() if isinstance(request, CommandRequest) else dict(request)
        if sequenced and payload.get("sequenceNumber") is None:
            payload["sequenceNumber"] = self._sequence.next()
        loop = asyncio.get_running_loop()
        task = QueueTask(payload=payload, done=loop.create_future(), epoch=self._epoch)
        self._pending.put_nowait(task)
        self._ensure_worker()
        return task.done

    def clear(self) -> int:
        """Discard every task that has not been transmitted yet."""

        self._epoch += 1
        discarded = 0
        while True:
            try:
                task = self._pending.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._resolve(task, False)
            discarded += 1
        if discarded:
            LOGGER.debug("Discarded %s queued command(s)", discarded)
        return discarded

    async def close(self) -> None:
        """Clear pending work and stop the worker."""

        self.clear()
        worker = self._worker
        self._worker = None
        if worker and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="command-queue")

    async def _run(self) -> None:
        while True:
            task = await self._pending.get()
            try:
                await self._dispatch(task)
            except asyncio.CancelledError:
                self._resolve(task, False)
                raise

    async def _dispatch(self, task: QueueTask) -> None:
        loop = asyncio.get_running_loop()
        if self._last_sent_at is not None:
            wait = self._interval - (loop.time() - self._last_sent_at)
            if wait > 0:
                await asyncio.sleep(wait)
        if task.epoch != self._epoch or task.done.done():
            # cleared while waiting on the gate
            self._resolve(task, False)
            return
        self._last_sent_at = loop.time()
        try:
            sent = await self._send(task.payload)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Failed to transmit %s", task.payload)
            sent = False
        self._resolve(task, sent)
        if sent and self._on_sent:
            try:
                self._on_sent()
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress on_sent callback error", exc_info=True)

    @staticmethod
    def _resolve(task: QueueTask, value: bool) -> None:
        if not task.done.done():
            task.done.set_result(value)
