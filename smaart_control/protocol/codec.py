"""Frame encoding and the explicit decode step for inbound frames."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from pydantic import ValidationError

from .models import InboundMessage


@dataclass(frozen=True)
class Parsed:
    message: InboundMessage


@dataclass(frozen=True)
class Malformed:
    raw: str
    cause: Exception


DecodeResult = Union[Parsed, Malformed]


def encode_payload(payload: Dict[str, Any]) -> str:
    return json.dumps(payload)


def decode_frame(raw: Union[str, bytes]) -> DecodeResult:
    """Decode one text frame; never raises."""

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            return Malformed(raw=repr(raw), cause=exc)
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        return Malformed(raw=raw, cause=exc)
    if not isinstance(data, dict):
        return Malformed(raw=raw, cause=ValueError(f"expected a JSON object, got {type(data).__name__}"))
    try:
        return Parsed(message=InboundMessage.model_validate(data))
    except ValidationError as exc:
        return Malformed(raw=raw, cause=exc)
