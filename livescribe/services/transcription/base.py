"""Segment transcription abstractions."""

from __future__ import annotations

import abc

from ...data.models import AudioSegment, TranscriptFragment


class SegmentTranscriber(abc.ABC):
    """Request/response transcription of one finalized segment.

    Submissions are independent and may run concurrently. A failed submission
    raises :class:`~livescribe.errors.TranscriptionError` and is never retried;
    re-sending stale audio would break real-time ordering.
    """

    content_type = "audio/wav"

    @abc.abstractmethod
    async def submit(self, segment: AudioSegment) -> TranscriptFragment:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the transcriber."""


__all__ = ["SegmentTranscriber"]
