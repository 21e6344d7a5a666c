"""Transcription through the meeting backend's ``/transcribe`` relay endpoint."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ...config import Settings, get_settings
from ...data.models import AudioSegment, TranscriptFragment
from ...errors import TranscriptionError
from ...logging import get_logger
from .base import SegmentTranscriber

LOGGER = get_logger(__name__)


class HttpSegmentTranscriber(SegmentTranscriber):
    """POST raw segment audio with a bearer credential and read back ``{"text": ...}``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        path: str = "/transcribe",
    ) -> None:
        settings = settings or get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.auth_token
        self.path = path
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": self.content_type}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def submit(self, segment: AudioSegment) -> TranscriptFragment:
        payload = segment.to_wav()
        url = f"{self.base_url}{self.path}"
        LOGGER.debug("Submitting segment %s (%s bytes) to %s", segment.segment_id, len(payload), url)
        try:
            response = await self._client.post(url, content=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Segment {segment.segment_id} request failed: {exc}", cause=exc) from exc

        if response.is_error:
            detail = self._error_detail(response)
            message = f"Segment {segment.segment_id} rejected with HTTP {response.status_code}: {detail}"
            cause = httpx.HTTPStatusError(message, request=response.request, response=response)
            raise TranscriptionError(message, cause=cause) from cause

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise TranscriptionError(f"Invalid transcription response: {exc}", cause=exc) from exc
        if not isinstance(data, dict):
            raise TranscriptionError("Transcription response is not a JSON object")

        text = data.get("text")
        if text is None:
            text = data.get("transcription", "")
        return TranscriptFragment(
            text=str(text or ""),
            source_segment_id=segment.segment_id,
            is_final=True,
        )

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return response.reason_phrase

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["HttpSegmentTranscriber"]
