"""Factory helpers for constructing microphone capture instances."""

from __future__ import annotations

from typing import Optional

from ...config import Settings, get_settings
from ...logging import get_logger
from .base import AudioCapture, CaptureInfo, DeviceError

LOGGER = get_logger(__name__)


def parse_device(device: Optional[str]) -> Optional[int | str]:
    if device is None:
        return None
    device = device.strip()
    if not device or device.lower() == "default":
        return None
    if device.isdigit():
        return int(device)
    return device


def create_microphone(device: Optional[str] = None, settings: Optional[Settings] = None) -> AudioCapture:
    """Return a capture for the requested microphone, defaulting to the configured one.

    Raises :class:`DeviceError` when no capture backend is usable.
    """

    settings = settings or get_settings()
    requested = device if device is not None else settings.default_mic_device
    resolved = parse_device(requested)

    try:
        from .sounddevice_backend import SoundDeviceCapture
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise DeviceError("sounddevice dependency is required for audio capture") from exc

    info = CaptureInfo(
        name="microphone",
        sample_rate=settings.sample_rate,
        channels=settings.channels,
        device="default" if resolved is None else str(resolved),
    )
    LOGGER.debug("Creating microphone capture for device %s", info.device)
    return SoundDeviceCapture(info=info, device=resolved, block_size=settings.block_size)


__all__ = ["create_microphone", "parse_device"]
