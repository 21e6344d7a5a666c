"""Local storage for finalized recordings."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..logging import get_logger

LOGGER = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def default_recording_filename(now: Optional[datetime] = None, suffix: str = ".wav") -> str:
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "-")
    return f"recording-{stamp}{suffix}"


class RecordingStore:
    """Write final audio blobs into the recordings directory."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def _safe_name(self, filename: str) -> str:
        name = Path(filename).name
        name = _UNSAFE_CHARS.sub("_", name).strip("._")
        if not name:
            name = default_recording_filename()
        return name

    def save_audio_file(self, data: bytes, filename: Optional[str] = None) -> Path:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self.base_dir / self._safe_name(filename or default_recording_filename())
        path.write_bytes(data)
        LOGGER.info("Saved %s bytes of audio to %s", len(data), path)
        return path


__all__ = ["RecordingStore", "default_recording_filename"]
