"""Data models used by livescribe."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from ..utils.audio import encode_wav


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"
    STOPPED = "stopped"


class RecordingMode(str, enum.Enum):
    SEGMENTED = "segmented"
    STREAMING = "streaming"


class ConnectionStatus(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class TranscriptFragment(BaseModel):
    """One unit of transcribed text. Instances are immutable."""

    model_config = ConfigDict(frozen=True)

    text: str
    arrival_timestamp: datetime = Field(default_factory=utcnow)
    source_segment_id: Optional[int] = None
    is_final: bool = True


@dataclass
class RecordingSession:
    session_id: str
    start_time: datetime
    mode: RecordingMode
    sample_rate: int
    channels: int
    state: SessionState = SessionState.IDLE
    duration: float = 0.0


@dataclass
class RecordingState:
    """Snapshot delivered to state observers on every transition."""

    is_recording: bool
    has_final_output: bool
    state: SessionState = SessionState.IDLE
    mode: Optional[RecordingMode] = None
    error: Optional[str] = None


@dataclass
class AudioSegment:
    """A bounded slice of captured audio awaiting transcription."""

    segment_id: int
    start_offset_ms: float
    planned_duration_ms: int
    overlap_ms: int
    sample_rate: int
    channels: int
    chunks: List[np.ndarray] = field(default_factory=list)
    audible: Optional[bool] = None
    level_db: Optional[float] = None

    @property
    def frames(self) -> int:
        return sum(chunk.shape[0] for chunk in self.chunks)

    @property
    def duration_ms(self) -> float:
        if not self.sample_rate:
            return 0.0
        return self.frames * 1000.0 / self.sample_rate

    def to_wav(self) -> bytes:
        return encode_wav(self.chunks, self.sample_rate, self.channels)


@dataclass
class ChannelConnection:
    """State of one duplex connection attempt. Replaced on every reconnect."""

    attempt_count: int = 0
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    last_error: Optional[BaseException] = None


__all__ = [
    "AudioSegment",
    "ChannelConnection",
    "ConnectionStatus",
    "RecordingMode",
    "RecordingSession",
    "RecordingState",
    "SessionState",
    "TranscriptFragment",
    "utcnow",
]
