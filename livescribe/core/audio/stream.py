"""Fan-out of a single microphone capture into independent taps.

A :class:`LiveAudioStream` owns the :class:`AudioCapture` device. Consumers
never read the device directly; they call :meth:`LiveAudioStream.clone` and
receive a :class:`StreamTap` that buffers its own copy of every chunk delivered
while it is attached. Stopping a tap detaches it without touching the device
or any other tap, which is what lets overlapping segments record
independently.

Chunks are read from the device on a worker thread and dispatched on the
event loop thread, so taps are only ever mutated from the loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
from typing import Callable, List, Optional

import numpy as np

from ...logging import get_logger
from .base import AudioCapture, CaptureInfo, DeviceError

LOGGER = get_logger(__name__)

EndListener = Callable[[Optional[BaseException]], None]


class StreamTap:
    """Independent capture handle scoped to one consumer."""

    def __init__(
        self,
        stream: "LiveAudioStream",
        name: str,
        on_data: Optional[Callable[[np.ndarray], None]] = None,
        timeslice_frames: Optional[int] = None,
        keep_audio: bool = True,
    ) -> None:
        self.name = name
        self._stream = stream
        self._on_data = on_data
        self._timeslice_frames = timeslice_frames
        self._keep_audio = keep_audio
        self._chunks: List[np.ndarray] = []
        self._pending: List[np.ndarray] = []
        self._pending_frames = 0
        self._sum_squares = 0.0
        self._sample_count = 0
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def chunks(self) -> List[np.ndarray]:
        return list(self._chunks)

    @property
    def frames(self) -> int:
        return sum(chunk.shape[0] for chunk in self._chunks)

    @property
    def rms(self) -> float:
        """Root-mean-square level of every sample seen by this tap."""

        if self._sample_count == 0:
            return 0.0
        return float(np.sqrt(self._sum_squares / self._sample_count))

    def feed(self, chunk: np.ndarray) -> None:
        if self._stopped:
            return
        if self._keep_audio:
            self._chunks.append(chunk)
        self._sum_squares += float(np.sum(np.square(chunk, dtype=np.float64)))
        self._sample_count += int(chunk.size)

        if self._on_data is None:
            return
        self._pending.append(chunk)
        self._pending_frames += chunk.shape[0]
        if self._timeslice_frames is None or self._pending_frames >= self._timeslice_frames:
            self._flush()

    def _flush(self) -> None:
        if not self._pending or self._on_data is None:
            return
        data = np.concatenate(self._pending, axis=0)
        self._pending = []
        self._pending_frames = 0
        try:
            self._on_data(data)
        except Exception:  # pragma: no cover - callbacks should not break capture
            LOGGER.exception("Data callback for tap %s raised an exception", self.name)

    def stop(self) -> List[np.ndarray]:
        """Detach from the stream, flush pending data and return the captured chunks."""

        if not self._stopped:
            self._flush()
            self._stopped = True
            self._stream._detach(self)
        return list(self._chunks)


class LiveAudioStream:
    """Owns a capture device and lends independent taps to consumers."""

    def __init__(self, capture: AudioCapture, poll_timeout: float = 0.05) -> None:
        self._capture = capture
        self._poll_timeout = poll_timeout
        self._taps: List[StreamTap] = []
        self._all_taps: List[StreamTap] = []
        self._end_listeners: List[EndListener] = []
        self._pump_task: Optional[asyncio.Task] = None
        self._counter = itertools.count()
        self._started = False
        self._stopped = False
        self._ended = False

    @property
    def info(self) -> CaptureInfo:
        return self._capture.info

    @property
    def active(self) -> bool:
        return self._started and not self._stopped and not self._ended

    @property
    def tracks_stopped(self) -> bool:
        """True once the device is released and every tap handed out is stopped."""

        return self._stopped and all(tap.stopped for tap in self._all_taps)

    def start(self) -> None:
        if self._started:
            return
        try:
            self._capture.start()
        except DeviceError:
            self._release_device()
            raise
        except Exception as exc:
            self._release_device()
            raise DeviceError(f"Microphone unavailable: {exc}") from exc
        self._started = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._pump_task = loop.create_task(self._pump())

    async def _pump(self) -> None:
        while self.active:
            try:
                chunk = await asyncio.to_thread(self._capture.read, self._poll_timeout)
            except DeviceError as exc:
                LOGGER.warning("Capture stream ended: %s", exc)
                self.end(exc)
                return
            if chunk is not None and self.active:
                self.feed(np.asarray(chunk, dtype=np.float32))

    def feed(self, chunk: np.ndarray) -> None:
        """Dispatch a chunk to every attached tap."""

        if chunk.ndim == 1:
            chunk = chunk[:, np.newaxis]
        for tap in list(self._taps):
            tap.feed(chunk)

    def clone(
        self,
        name: Optional[str] = None,
        on_data: Optional[Callable[[np.ndarray], None]] = None,
        timeslice_ms: Optional[int] = None,
        keep_audio: bool = True,
    ) -> StreamTap:
        if self._stopped or self._ended:
            raise DeviceError("Cannot clone a stream that is no longer live")
        timeslice_frames = None
        if timeslice_ms:
            timeslice_frames = max(1, int(self.info.sample_rate * timeslice_ms / 1000))
        tap = StreamTap(
            self,
            name or f"tap-{next(self._counter)}",
            on_data=on_data,
            timeslice_frames=timeslice_frames,
            keep_audio=keep_audio,
        )
        self._taps.append(tap)
        self._all_taps.append(tap)
        return tap

    def _detach(self, tap: StreamTap) -> None:
        with contextlib.suppress(ValueError):
            self._taps.remove(tap)

    def add_end_listener(self, listener: EndListener) -> Callable[[], None]:
        self._end_listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._end_listeners.remove(listener)

        return _remove

    def end(self, error: Optional[BaseException] = None) -> None:
        """Mark the stream as ended unexpectedly and notify listeners."""

        if self._ended or self._stopped:
            return
        self._ended = True
        for listener in list(self._end_listeners):
            try:
                listener(error)
            except Exception:  # pragma: no cover - listeners should not break shutdown
                LOGGER.exception("Stream end listener raised an exception")

    def stop(self) -> None:
        """Stop every tap and release the capture device."""

        if self._stopped:
            return
        self._stopped = True
        if self._pump_task is not None:
            self._pump_task.cancel()
            self._pump_task = None
        for tap in list(self._taps):
            tap.stop()
        self._release_device()

    def _release_device(self) -> None:
        with contextlib.suppress(Exception):
            self._capture.stop()
        with contextlib.suppress(Exception):
            self._capture.close()
        LOGGER.debug("Released capture device %s", self.info.name)

    def __enter__(self) -> "LiveAudioStream":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = ["LiveAudioStream", "StreamTap"]
