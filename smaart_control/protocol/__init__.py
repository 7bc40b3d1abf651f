"""Smaart v3 API wire models, frame decoding and the server error table."""

from .codec import Malformed, Parsed, decode_frame, encode_payload
from .errors import ERRORS, ErrorDescriptor, lookup_error
from .models import CommandRequest, InboundMessage, InboundResponse, TargetSelector

__all__ = [
    "CommandRequest",
    "ERRORS",
    "ErrorDescriptor",
    "InboundMessage",
    "InboundResponse",
    "Malformed",
    "Parsed",
    "TargetSelector",
    "decode_frame",
    "encode_payload",
    "lookup_error",
]
