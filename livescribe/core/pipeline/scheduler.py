"""Cut a live microphone stream into overlapping, time-boxed segments."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ...data.models import AudioSegment
from ...errors import ConfigError
from ...logging import get_logger
from ..audio.stream import LiveAudioStream, StreamTap
from .silence import SilenceGate

LOGGER = get_logger(__name__)

SegmentCallback = Callable[[AudioSegment], None]


@dataclass(frozen=True)
class SchedulerConfig:
    segment_duration_ms: int = 5_000
    overlap_ms: int = 100

    def __post_init__(self) -> None:
        if self.segment_duration_ms <= 0:
            raise ConfigError("segment_duration_ms must be positive")
        if self.overlap_ms < 0:
            raise ConfigError("overlap_ms must not be negative")
        if self.segment_duration_ms <= self.overlap_ms:
            raise ConfigError(
                f"segment_duration_ms ({self.segment_duration_ms}) must exceed overlap_ms ({self.overlap_ms})"
            )

    @property
    def period_ms(self) -> int:
        return self.segment_duration_ms - self.overlap_ms


@dataclass
class _OpenSegment:
    segment: AudioSegment
    tap: StreamTap
    deadline: asyncio.TimerHandle


class SegmentScheduler:
    """Open a segment every ``duration - overlap`` ms and close each one ``duration`` ms after it opened.

    Segments are recorded through their own stream tap, so a segment closing
    never interrupts the capture of the next one. Closed segments pass through
    the optional :class:`SilenceGate` and are then handed to ``on_segment``
    without waiting for whatever the callback starts.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        on_segment: SegmentCallback,
        gate: Optional[SilenceGate] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.config = config
        self._on_segment = on_segment
        self._gate = gate
        self._loop = loop
        self._stream: Optional[LiveAudioStream] = None
        self._open: Dict[int, _OpenSegment] = {}
        self._ids = itertools.count()
        self._tick_handle: Optional[asyncio.TimerHandle] = None
        self._tick_index = 0
        self._origin = 0.0
        self._running = False
        self._remove_end_listener: Optional[Callable[[], None]] = None
        self.opened: List[AudioSegment] = []
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def open_segment_ids(self) -> List[int]:
        return sorted(self._open)

    def start(self, stream: LiveAudioStream) -> None:
        if self._running:
            raise RuntimeError("Segment scheduler already running")
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._stream = stream
        self._running = True
        self._origin = self._loop.time()
        self._tick_index = 0
        self._remove_end_listener = stream.add_end_listener(self._on_stream_end)
        LOGGER.info(
            "Segmenting stream every %s ms (duration %s ms, overlap %s ms)",
            self.config.period_ms,
            self.config.segment_duration_ms,
            self.config.overlap_ms,
        )
        self._open_segment()
        self._schedule_tick()

    def stop(self) -> None:
        """Cancel all timers and close every open segment immediately."""

        if not self._running:
            return
        self._running = False
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self._remove_end_listener is not None:
            self._remove_end_listener()
            self._remove_end_listener = None
        for segment_id in sorted(self._open):
            self._close_segment(segment_id)
        LOGGER.info("Segment scheduler stopped after %s segment(s)", len(self.opened))

    def _schedule_tick(self) -> None:
        assert self._loop is not None
        self._tick_index += 1
        when = self._origin + self._tick_index * self.config.period_ms / 1000.0
        self._tick_handle = self._loop.call_at(when, self._tick)

    def _tick(self) -> None:
        if not self._running:
            return
        self._open_segment()
        self._schedule_tick()

    def _open_segment(self) -> None:
        assert self._loop is not None and self._stream is not None
        segment_id = next(self._ids)
        info = self._stream.info
        segment = AudioSegment(
            segment_id=segment_id,
            start_offset_ms=(self._loop.time() - self._origin) * 1000.0,
            planned_duration_ms=self.config.segment_duration_ms,
            overlap_ms=self.config.overlap_ms,
            sample_rate=info.sample_rate,
            channels=info.channels,
        )
        tap = self._stream.clone(name=f"segment-{segment_id}")
        deadline = self._loop.call_later(
            self.config.segment_duration_ms / 1000.0, self._close_segment, segment_id
        )
        self._open[segment_id] = _OpenSegment(segment=segment, tap=tap, deadline=deadline)
        self.opened.append(segment)
        LOGGER.debug("Opened segment %s at %.0f ms", segment_id, segment.start_offset_ms)

    def _close_segment(self, segment_id: int) -> None:
        entry = self._open.pop(segment_id, None)
        if entry is None:
            return
        entry.deadline.cancel()
        segment = entry.segment
        segment.chunks = entry.tap.stop()

        if segment.frames == 0:
            LOGGER.debug("Segment %s captured no audio; dropping", segment_id)
            self.dropped += 1
            return

        if self._gate is not None:
            audible, level = self._gate.evaluate(entry.tap)
            segment.audible = audible
            segment.level_db = level
            if not audible:
                LOGGER.info("Segment %s is silent (%.1f dB); dropping", segment_id, level)
                self.dropped += 1
                return

        LOGGER.debug("Handing off segment %s (%.0f ms of audio)", segment_id, segment.duration_ms)
        try:
            self._on_segment(segment)
        except Exception:  # pragma: no cover - callbacks should not break scheduling
            LOGGER.exception("Segment callback raised an exception")

    def _on_stream_end(self, error: Optional[BaseException]) -> None:
        LOGGER.warning("Capture stream ended; stopping segment scheduler")
        self.stop()


__all__ = ["SchedulerConfig", "SegmentCallback", "SegmentScheduler"]
