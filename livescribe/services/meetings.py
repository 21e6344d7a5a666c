"""Client for the meeting-record service that stores transcripts and notes."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import LivescribeError
from ..logging import get_logger

LOGGER = get_logger(__name__)


class MeetingServiceError(LivescribeError):
    pass


class MeetingsClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = settings or get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)

    async def update_meeting(
        self,
        token: str,
        meeting_id: str,
        *,
        transcription: Optional[str] = None,
        notes: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        """PUT the given fields onto an existing meeting and return the stored record."""

        if not token:
            raise MeetingServiceError("A bearer token is required to update meetings")
        payload = {
            key: value
            for key, value in {"title": title, "notes": notes, "transcription": transcription}.items()
            if value is not None
        }
        LOGGER.info("Updating meeting %s (%s)", meeting_id, ", ".join(sorted(payload)) or "no fields")
        try:
            response = await self._client.put(
                f"{self.base_url}/meetings/{meeting_id}",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise MeetingServiceError(f"Failed to update meeting: {exc}") from exc

        if response.is_error:
            message = "Failed to update meeting"
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("error"):
                message = str(data["error"])
            raise MeetingServiceError(f"{message} (HTTP {response.status_code})")
        try:
            return response.json()
        except ValueError as exc:
            raise MeetingServiceError(f"Invalid response: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["MeetingServiceError", "MeetingsClient"]
