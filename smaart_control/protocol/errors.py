"""Error identifiers reported by the Smaart v3 API server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from smaart_control.status import InstanceStatus


@dataclass(frozen=True)
class ErrorDescriptor:
    id: str
    description: str
    status: InstanceStatus
    status_description: Optional[str]
    log_level: int


def _warning(error_id: str, description: str, status_description: Optional[str]) -> ErrorDescriptor:
    return ErrorDescriptor(
        id=error_id,
        description=description,
        status=InstanceStatus.UNKNOWN_WARNING,
        status_description=status_description,
        log_level=logging.WARNING,
    )


_UNKNOWN_PROPERTY = "The property does not apply to the target"
_INCORRECT_PASSWORD = "The submitted password was incorrect"

ERRORS: tuple[ErrorDescriptor, ...] = (
    _warning("parse error", "An error occurred while parsing the JSON request", "Parsing Error"),
    _warning(
        "timeout",
        "The timeout elapsed while an asynchronous operation was being carried out "
        "(making a window or tab active, etc)",
        "Timeout",
    ),
    _warning(
        "unknown target",
        "The target of the request was not recognized - name misspelled, measurement was "
        "specified that was not in the active tab/window. etc.",
        "Unknown Target",
    ),
    _warning("unknown action", "The action was not recognized by the target", "Unknown Action"),
    _warning("unknown property", _UNKNOWN_PROPERTY, "Unknown Property"),
    # spelling used by some server builds
    _warning("unkown property", _UNKNOWN_PROPERTY, "Unknown Property"),
    _warning("unknown value", "The value does not apply to the property", "Unknown Value"),
    _warning(
        "read only",
        "An attempt was made to 'set' a property that is read-only",
        "Attempt to set read only property",
    ),
    _warning(
        "not implemented",
        "A hole in the implementation, or an unreasonable request has been made",
        "Not Implemented",
    ),
    _warning(
        "signal generator required",
        "An attempt was made to start a measurement that requires the signal generator to be "
        "active - this will not be returned when attempting to start all measurements of a tab",
        "Sig Gen Required",
    ),
    _warning(
        "measurement not active",
        "An attempt to find the delay of a measurement was made while the measurement was not "
        "active and the automaticallyStart property was not set",
        "Measurement not active",
    ),
    ErrorDescriptor(
        id="authentication required",
        description="The API requires a password",
        status=InstanceStatus.AUTHENTICATION_FAILURE,
        status_description="Authentication Required",
        log_level=logging.WARNING,
    ),
    ErrorDescriptor(
        id="incorrect password",
        description=_INCORRECT_PASSWORD,
        status=InstanceStatus.AUTHENTICATION_FAILURE,
        status_description="Incorrect Password",
        log_level=logging.ERROR,
    ),
    ErrorDescriptor(
        id="incorect password",
        description=_INCORRECT_PASSWORD,
        status=InstanceStatus.AUTHENTICATION_FAILURE,
        status_description="Incorrect Password",
        log_level=logging.ERROR,
    ),
    ErrorDescriptor(
        id="internal error",
        description="Internal error: Theoretical impossibility",
        status=InstanceStatus.UNKNOWN_ERROR,
        status_description="Internal Error",
        log_level=logging.ERROR,
    ),
)

_BY_ID: Dict[str, ErrorDescriptor] = {descriptor.id: descriptor for descriptor in ERRORS}


def lookup_error(error_id: str) -> Optional[ErrorDescriptor]:
    """Exact match on the identifier the server reported."""

    return _BY_ID.get(error_id)


__all__ = ["ERRORS", "ErrorDescriptor", "lookup_error"]
