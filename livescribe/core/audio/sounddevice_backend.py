"""Audio capture implementation powered by sounddevice/PortAudio."""

from __future__ import annotations

import contextlib
import queue
from typing import Optional

import numpy as np

from ...logging import get_logger
from .base import AudioCapture, CaptureInfo, DeviceError

LOGGER = get_logger(__name__)


class SoundDeviceCapture(AudioCapture):
    """Microphone capture using the sounddevice library."""

    def __init__(
        self,
        info: CaptureInfo,
        device: Optional[int | str] = None,
        block_size: int = 1024,
        dtype: str = "float32",
    ) -> None:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:  # pragma: no cover - depends on PortAudio
            raise DeviceError("sounddevice and PortAudio are required for microphone capture") from exc

        self._sd = sd
        self.info = info
        self._device = device
        self._block_size = block_size
        self._dtype = dtype
        self._queue: queue.Queue[np.ndarray] = queue.Queue()
        self._stream: Optional[sd.InputStream] = None
        self._aborted = False

    def _callback(self, indata, frames, time_info, status) -> None:  # pragma: no cover - executed in runtime
        if status:
            LOGGER.warning("sounddevice status: %s", status)
        self._queue.put(indata.copy())

    def _finished(self) -> None:  # pragma: no cover - executed in runtime
        if self._stream is not None:
            LOGGER.warning("Input stream for %s finished unexpectedly", self.info.name)
            self._aborted = True

    def start(self) -> None:
        if self._stream is not None:
            return
        LOGGER.info(
            "Starting sounddevice capture for %s using device %s",
            self.info.name,
            self._device,
        )
        try:
            stream = self._sd.InputStream(
                samplerate=self.info.sample_rate,
                channels=self.info.channels,
                dtype=self._dtype,
                blocksize=self._block_size,
                device=self._device,
                callback=self._callback,
                finished_callback=self._finished,
            )
        except (self._sd.PortAudioError, ValueError) as exc:
            raise DeviceError(f"Cannot open microphone {self._device!r}: {exc}") from exc

        try:
            stream.start()
        except self._sd.PortAudioError as exc:
            with contextlib.suppress(Exception):
                stream.close()
            raise DeviceError(f"Cannot start microphone {self._device!r}: {exc}") from exc

        self._aborted = False
        self._stream = stream

    def stop(self) -> None:
        if self._stream is not None:
            LOGGER.info("Stopping capture for %s", self.info.name)
            stream, self._stream = self._stream, None
            stream.stop()
            stream.close()

    def close(self) -> None:
        self.stop()
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except queue.Empty:  # pragma: no cover
                break

    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        if self._aborted and self._queue.empty():
            raise DeviceError(f"Microphone {self._device!r} stopped delivering audio")
        try:
            if timeout is None or timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


__all__ = ["SoundDeviceCapture"]
