"""Twilio Media Streams wire format.

Inbound events arrive as JSON text frames (``connected``, ``start``, ``media``,
``mark``, ``dtmf``, ``stop``). Outbound we only ever send ``media`` frames and
``mark`` messages.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

LOGGER = logging.getLogger(__name__)


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ConnectedEvent(_Event):
    event: Literal["connected"]
    protocol: str | None = None


class StartPayload(_Event):
    call_sid: str = Field(default="", alias="callSid")
    stream_sid: str | None = Field(default=None, alias="streamSid")
    tracks: list[str] = Field(default_factory=list)
    custom_parameters: dict[str, Any] = Field(default_factory=dict, alias="customParameters")


class StartEvent(_Event):
    event: Literal["start"]
    stream_sid: str | None = Field(default=None, alias="streamSid")
    start: StartPayload

    @property
    def resolved_stream_sid(self) -> str | None:
        return self.start.stream_sid or self.stream_sid


class MediaPayload(_Event):
    payload: bytes
    track: str = "inbound"
    chunk: int | str | None = None
    timestamp: int | str | None = None

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, value: Any) -> bytes:
        if not isinstance(value, str):
            raise ValueError("media payload must be a base64 string")
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError("media payload is not valid base64") from exc


class MediaEvent(_Event):
    event: Literal["media"]
    sequence_number: int | None = Field(default=None, alias="sequenceNumber")
    media: MediaPayload


class StopEvent(_Event):
    event: Literal["stop"]


class MarkEvent(_Event):
    event: Literal["mark"]
    mark: dict[str, Any] = Field(default_factory=dict)


class DtmfEvent(_Event):
    event: Literal["dtmf"]
    dtmf: dict[str, Any] = Field(default_factory=dict)


class UnknownEvent(_Event):
    event: str


TwilioEvent = Union[
    ConnectedEvent, StartEvent, MediaEvent, StopEvent, MarkEvent, DtmfEvent, UnknownEvent
]

_EVENT_MODELS: dict[str, type[_Event]] = {
    "connected": ConnectedEvent,
    "start": StartEvent,
    "media": MediaEvent,
    "stop": StopEvent,
    "mark": MarkEvent,
    "dtmf": DtmfEvent,
}


def parse_twilio_ws_message(text: str) -> TwilioEvent | None:
    """Parse one inbound text frame; returns None for malformed input."""

    try:
        message = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        return None

    model = _EVENT_MODELS.get(message["event"], UnknownEvent)
    try:
        return model.model_validate(message)
    except ValidationError as exc:
        LOGGER.debug("Dropping invalid %s event: %s", message["event"], exc.errors())
        return None


def media_message(stream_sid: str, frame: bytes) -> str:
    return json.dumps(
        {
            "event": "media",
            "streamSid": stream_sid,
            "track": "outbound",
            "media": {"payload": base64.b64encode(frame).decode("ascii")},
        }
    )


def mark_message(stream_sid: str | None, name: str) -> str:
    message: dict[str, Any] = {"event": "mark", "mark": {"name": name}}
    if stream_sid:
        message["streamSid"] = stream_sid
    return json.dumps(message)
