"""Factories for runtime service selection."""

from __future__ import annotations

from typing import Optional

from ..config import Settings, get_settings
from ..errors import ServiceConfigurationError
from .transcription.base import SegmentTranscriber
from .transcription.dummy import DummySegmentTranscriber
from .transcription.http_client import HttpSegmentTranscriber


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "none"
    return name.strip().lower()


def resolve_segment_transcriber(
    name: Optional[str], settings: Optional[Settings] = None
) -> Optional[SegmentTranscriber]:
    settings = settings or get_settings()
    backend = _normalise(name)
    if backend in {"", "none", "off"}:
        return None
    if backend == "dummy":
        return DummySegmentTranscriber()
    if backend == "http":
        return HttpSegmentTranscriber(settings=settings)
    if backend == "openai":
        from .transcription.openai_client import OpenAISegmentTranscriber

        return OpenAISegmentTranscriber(settings=settings)
    raise ServiceConfigurationError(f"Unknown transcription backend: {name}")


__all__ = ["ServiceConfigurationError", "resolve_segment_transcriber"]
