"""Ordered, append-only transcript built from arriving fragments."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from ...data.models import TranscriptFragment, utcnow
from ...logging import get_logger

LOGGER = get_logger(__name__)


class TranscriptAssembler:
    """Collect fragments in arrival order and track the latest one as the live fragment.

    Fragments are stored as immutable copies, so nothing that arrives later,
    including another fragment for the same segment, can alter an entry that
    is already in the history. Overlapping segments can therefore produce
    repeated words; the assembler does not try to de-duplicate them.
    """

    def __init__(self, clock: Callable = utcnow) -> None:
        self._clock = clock
        self._history: List[TranscriptFragment] = []
        self._live: Optional[TranscriptFragment] = None

    def on_fragment(self, fragment: TranscriptFragment) -> Optional[TranscriptFragment]:
        text = fragment.text.strip()
        if not text:
            return None
        stored = fragment.model_copy(update={"text": text, "arrival_timestamp": self._clock()})
        self._history.append(stored)
        self._live = stored
        LOGGER.debug(
            "Fragment #%s from segment %s: %s",
            len(self._history),
            stored.source_segment_id,
            text,
        )
        return stored

    def history(self) -> Tuple[TranscriptFragment, ...]:
        return tuple(self._history)

    @property
    def live(self) -> Optional[TranscriptFragment]:
        return self._live

    @property
    def live_text(self) -> str:
        return self._live.text if self._live is not None else ""

    def transcript_text(self, separator: str = "\n") -> str:
        return separator.join(fragment.text for fragment in self._history)

    def __len__(self) -> int:
        return len(self._history)

    def reset(self) -> None:
        self._history = []
        self._live = None


__all__ = ["TranscriptAssembler"]
