"""Duplex (websocket) transcription channel."""

from .channel import StreamingTranscriptionChannel
from .events import ErrorEvent, TranscriptEvent, parse_event
from .reconnect import ReconnectPolicy

__all__ = [
    "ErrorEvent",
    "ReconnectPolicy",
    "StreamingTranscriptionChannel",
    "TranscriptEvent",
    "parse_event",
]
