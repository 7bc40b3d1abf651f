"""Single-slot cancellable timer."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class OneShotTimer:
    """At most one outstanding delayed call; arming again replaces it.

    Once the delay elapses the timer no longer counts as ``pending``, but the
    running callback still occupies the slot: ``cancel()`` from another task
    stops it. A callback that cancels or re-arms its own timer is not
    interrupted.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._task: Optional[asyncio.Task[None]] = None
        self._delay: Optional[float] = None
        self._firing = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done() and not self._firing

    @property
    def delay(self) -> Optional[float]:
        """Delay of the pending run, or ``None`` when idle."""

        return self._delay if self.pending else None

    def arm(self, delay: float, callback: TimerCallback) -> None:
        self.cancel()
        self._delay = float(delay)
        self._firing = False
        self._task = asyncio.create_task(self._fire(float(delay), callback), name=f"timer-{self._name}")

    def arm_if_idle(self, delay: float, callback: TimerCallback) -> bool:
        if self.pending:
            return False
        self.arm(delay, callback)
        return True

    def cancel(self) -> bool:
        task = self._task
        if task is not None and task is asyncio.current_task():
            return False
        self._task = None
        self._delay = None
        self._firing = False
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def _fire(self, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)
        current = asyncio.current_task()
        if self._task is current:
            self._delay = None
            self._firing = True
        try:
            await callback()
        except asyncio.CancelledError:
            LOGGER.debug("Timer %s callback cancelled", self._name)
            raise
        except Exception:  # noqa: BLE001
            LOGGER.exception("Timer %s callback failed", self._name)
        finally:
            if self._task is current:
                self._task = None
                self._firing = False
