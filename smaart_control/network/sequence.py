"""Request sequence numbers for outbound commands."""

from __future__ import annotations

HANDSHAKE_SEQUENCE = 1
FIRST_SEQUENCE = 2
SEQUENCE_CEILING = 0xFFFF


class SequenceAllocator:
    """Hands out increasing sequence numbers, wrapping back to ``start``.

    0 is never used and 1 is reserved for the probe sent right after the
    socket opens, so the counter runs ``start..ceiling`` and then restarts.
    """

    def __init__(self, start: int = FIRST_SEQUENCE, ceiling: int = SEQUENCE_CEILING) -> None:
        if start <= HANDSHAKE_SEQUENCE:
            raise ValueError(f"start must be greater than {HANDSHAKE_SEQUENCE}")
        if ceiling < start:
            raise ValueError("ceiling must not be below start")
        self._start = start
        self._ceiling = ceiling
        self._next = start

    def next(self) -> int:
        value = self._next
        self._next = value + 1 if value < self._ceiling else self._start
        return value

    def peek(self) -> int:
        return self._next

    def reset(self) -> None:
        self._next = self._start
