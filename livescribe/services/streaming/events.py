"""Inbound events of the duplex transcription channel."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ...logging import get_logger

LOGGER = get_logger(__name__)


class TranscriptEvent(BaseModel):
    type: Literal["transcript"]
    data: str


class ErrorEvent(BaseModel):
    type: Literal["error"]
    message: str


ChannelEvent = Annotated[Union[TranscriptEvent, ErrorEvent], Field(discriminator="type")]

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(ChannelEvent)


def parse_event(message: Union[str, bytes]) -> Optional[Union[TranscriptEvent, ErrorEvent]]:
    """Decode a text frame; anything that is not a known event yields ``None``."""

    if not isinstance(message, str):
        LOGGER.debug("Ignoring %s byte binary frame", len(message))
        return None
    try:
        return _EVENT_ADAPTER.validate_json(message)
    except ValidationError:
        LOGGER.debug("Ignoring unrecognised channel message: %.200s", message)
        return None


__all__ = ["ChannelEvent", "ErrorEvent", "TranscriptEvent", "parse_event"]
