"""Connection status reported to the host application."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional, Tuple

LOGGER = logging.getLogger(__name__)

StatusSink = Callable[["InstanceStatus", Optional[str]], None]


class InstanceStatus(str, enum.Enum):
    OK = "ok"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    CONNECTION_FAILURE = "connection_failure"
    BAD_CONFIG = "bad_config"
    UNKNOWN_ERROR = "unknown_error"
    UNKNOWN_WARNING = "unknown_warning"
    AUTHENTICATION_FAILURE = "authentication_failure"


class StatusTracker:
    """Remembers the last reported status and drops repeated reports."""

    def __init__(self, sink: Optional[StatusSink] = None) -> None:
        self._sink = sink
        self._last: Optional[Tuple[InstanceStatus, Optional[str]]] = None

    @property
    def last(self) -> Optional[Tuple[InstanceStatus, Optional[str]]]:
        return self._last

    @property
    def status(self) -> Optional[InstanceStatus]:
        return self._last[0] if self._last else None

    def report(self, status: InstanceStatus, message: Optional[str] = None) -> bool:
        """Publish ``(status, message)`` unless it equals the previous report."""

        current = (status, message)
        if self._last == current:
            return False
        self._last = current
        LOGGER.debug("Status -> %s%s", status.value, f" ({message})" if message else "")
        if self._sink:
            try:
                self._sink(status, message)
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress status sink error", exc_info=True)
        return True
