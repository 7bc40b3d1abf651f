from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator

Action = Literal["get", "set", "issueCommand", "capture"]


class TargetSelector(BaseModel):
    """Structured target naming a tab, a measurement or a trace file."""

    model_config = ConfigDict(populate_by_name=True)

    tab_name: Optional[str] = Field(default=None, alias="tabName")
    measurement_name: Optional[str] = Field(default=None, alias="measurementName")
    trace_file_path: Optional[str] = Field(default=None, alias="traceFilePath")


class CommandRequest(BaseModel):
    """Outbound request sent to the Smaart API."""

    model_config = ConfigDict(populate_by_name=True)

    action: Action
    target: Optional[Union[str, TargetSelector]] = None
    properties: Optional[List[Dict[str, Any]]] = None
    sequence_number: Optional[int] = Field(default=None, alias="sequenceNumber")

    @field_validator("properties")
    @classmethod
    def _single_key_properties(cls, value: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
        if value is None:
            return value
        for item in value:
            if len(item) != 1:
                raise ValueError(f"Each property assignment must have exactly one key, got {sorted(item)}")
        return value

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class InboundResponse(BaseModel):
    """Body of a server frame; unknown fields are kept as extras."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    error: Optional[str] = None
    authentication_required: Optional[StrictBool] = Field(default=None, alias="authenticationRequired")


class InboundMessage(BaseModel):
    """Server frame, either a reply echoing a sequence number or a push."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sequence_number: Optional[StrictInt] = Field(default=None, alias="sequenceNumber")
    response: InboundResponse
