"""OpenAI powered segment transcription."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ...config import Settings, get_settings
from ...data.models import AudioSegment, TranscriptFragment
from ...errors import ServiceConfigurationError, TranscriptionError
from ...logging import get_logger
from .base import SegmentTranscriber

LOGGER = get_logger(__name__)


class OpenAISegmentTranscriber(SegmentTranscriber):
    def __init__(
        self,
        model: Optional[str] = None,
        language: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.model = model or settings.openai_transcription_model
        self.language = language or settings.transcription_language
        try:
            from openai import AsyncOpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise ServiceConfigurationError("openai package is required for OpenAISegmentTranscriber") from exc
        client_kwargs = {}
        if settings.openai_api_key:
            client_kwargs["api_key"] = settings.openai_api_key

        try:
            self.client = AsyncOpenAI(**client_kwargs)
            self._openai_error_cls = OpenAIError
        except OpenAIError as exc:
            message = str(exc)
            if "api_key" in message.lower():
                raise ServiceConfigurationError(
                    "OpenAI API key not configured. Set the OPENAI_API_KEY environment variable "
                    "or LIVESCRIBE_OPENAI_API_KEY."
                ) from exc
            raise ServiceConfigurationError(f"Failed to initialise OpenAI transcription client: {message}") from exc

    async def submit(self, segment: AudioSegment) -> TranscriptFragment:
        LOGGER.debug("Requesting OpenAI transcription for segment %s", segment.segment_id)
        request: Dict[str, Any] = {
            "model": self.model,
            "file": (f"segment-{segment.segment_id}.wav", segment.to_wav(), self.content_type),
        }
        if self.language:
            request["language"] = self.language
        try:
            response = await self.client.audio.transcriptions.create(**request)
        except self._openai_error_cls as exc:
            raise TranscriptionError(f"OpenAI rejected segment {segment.segment_id}: {exc}", cause=exc) from exc

        return TranscriptFragment(
            text=self._response_text(response),
            source_segment_id=segment.segment_id,
            is_final=True,
        )

    def _response_text(self, response: Any) -> str:
        if response is None:
            return ""
        if isinstance(response, str):
            return response
        if isinstance(response, dict):
            return str(response.get("text", "") or "")
        return str(getattr(response, "text", "") or "")

    async def aclose(self) -> None:
        await self.client.close()


__all__ = ["OpenAISegmentTranscriber"]
