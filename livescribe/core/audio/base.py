"""Audio capture abstractions."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ...errors import DeviceError


@dataclass
class CaptureInfo:
    """Metadata about a capture channel."""

    name: str
    sample_rate: int
    channels: int
    device: Optional[str] = None


class AudioCapture(abc.ABC):
    """Abstract capture stream that yields float32 numpy chunks shaped (frames, channels)."""

    info: CaptureInfo

    @abc.abstractmethod
    def start(self) -> None:
        """Start the underlying capture stream.

        Raises :class:`DeviceError` when the device cannot be opened.
        """

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop the underlying capture stream."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release all resources associated with the stream."""

    @abc.abstractmethod
    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Return the next available chunk or ``None`` if none ready.

        Raises :class:`DeviceError` once the device has gone away.
        """


__all__ = ["AudioCapture", "CaptureInfo", "DeviceError"]
