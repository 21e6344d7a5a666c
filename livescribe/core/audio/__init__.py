"""Audio capture package."""

from .base import AudioCapture, CaptureInfo, DeviceError
from .stream import LiveAudioStream, StreamTap

__all__ = ["AudioCapture", "CaptureInfo", "DeviceError", "LiveAudioStream", "StreamTap"]
