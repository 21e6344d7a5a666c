"""Dummy transcription service for testing or offline usage."""

from __future__ import annotations

from ...data.models import AudioSegment, TranscriptFragment
from .base import SegmentTranscriber


class DummySegmentTranscriber(SegmentTranscriber):
    def __init__(self, prefix: str = "Dummy transcript") -> None:
        self.prefix = prefix
        self.submitted: list[int] = []

    async def submit(self, segment: AudioSegment) -> TranscriptFragment:
        self.submitted.append(segment.segment_id)
        text = f"{self.prefix} for segment {segment.segment_id} ({segment.duration_ms / 1000:.1f}s)."
        return TranscriptFragment(text=text, source_segment_id=segment.segment_id, is_final=True)


__all__ = ["DummySegmentTranscriber"]
