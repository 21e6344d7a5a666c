"""Segment transcription services."""

from .base import SegmentTranscriber
from .dummy import DummySegmentTranscriber
from .http_client import HttpSegmentTranscriber

__all__ = ["DummySegmentTranscriber", "HttpSegmentTranscriber", "SegmentTranscriber"]
