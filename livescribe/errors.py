"""Exception hierarchy shared by the recording pipeline."""

from __future__ import annotations

from typing import Optional


class LivescribeError(Exception):
    """Base class for all pipeline errors."""


class DeviceError(LivescribeError):
    """Raised when the microphone is unavailable or access was denied."""


class ConfigError(LivescribeError, ValueError):
    """Raised for invalid pipeline configuration."""


class ServiceConfigurationError(ConfigError):
    """Raised when a transcription backend is unknown or cannot be initialised."""


class TranscriptionError(LivescribeError):
    """A single segment submission failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ChannelError(LivescribeError):
    """The duplex transcription channel failed or closed unexpectedly."""


class ChannelExhausted(LivescribeError):
    """The duplex channel ran out of reconnect attempts."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None) -> None:
        message = f"Transcription channel gave up after {attempts} reconnect attempt(s)"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "ChannelError",
    "ChannelExhausted",
    "ConfigError",
    "DeviceError",
    "LivescribeError",
    "ServiceConfigurationError",
    "TranscriptionError",
]
