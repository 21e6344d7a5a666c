"""Tests for microphone discovery and the sounddevice capture backend."""

from __future__ import annotations

import sys
from types import SimpleNamespace

import numpy as np
import pytest

from livescribe import config
from livescribe.core.audio import devices
from livescribe.core.audio.base import CaptureInfo
from livescribe.core.audio.factory import create_microphone, parse_device
from livescribe.errors import DeviceError


class _FakePortAudioError(Exception):
    pass


class _FakeInputStream:
    def __init__(self, module, **kwargs) -> None:
        self.module = module
        self.kwargs = kwargs
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.module.start_error is not None:
            raise self.module.start_error
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True


class _FakeSoundDeviceModule:
    def __init__(self) -> None:
        self.PortAudioError = _FakePortAudioError
        self.default = SimpleNamespace(device=(1, 3))
        self.start_error = None
        self.streams: list[_FakeInputStream] = []
        self._hostapis = [{"name": "ALSA"}]
        self._devices = [
            {"name": "HDMI Output", "hostapi": 0, "max_input_channels": 0, "default_samplerate": 48_000.0},
            {"name": "USB Microphone", "hostapi": 0, "max_input_channels": 1, "default_samplerate": 16_000.0},
            {"name": "Laptop Array", "hostapi": 0, "max_input_channels": 2, "default_samplerate": 44_100.0},
        ]

    def query_hostapis(self):  # pragma: no cover - trivial
        return self._hostapis

    def query_devices(self):  # pragma: no cover - trivial
        return list(self._devices)

    def InputStream(self, **kwargs):  # noqa: N802 - mirrors the sounddevice API
        stream = _FakeInputStream(self, **kwargs)
        self.streams.append(stream)
        return stream


@pytest.fixture
def fake_sd(monkeypatch):
    module = _FakeSoundDeviceModule()
    monkeypatch.setitem(sys.modules, "sounddevice", module)
    return module


def test_list_input_devices_skips_outputs_and_marks_default(fake_sd) -> None:
    found = devices.list_input_devices()

    assert [device.name for device in found] == ["USB Microphone", "Laptop Array"]
    assert [device.is_default for device in found] == [True, False]
    assert found[0].hostapi == "ALSA"


def test_format_device_table_fallback_contains_install_hint(monkeypatch) -> None:
    monkeypatch.setattr(devices, "list_input_devices", lambda: [])

    message = devices.format_device_table()

    assert message.startswith("No input devices detected.")


def test_format_device_table_accepts_custom_device_list() -> None:
    custom_devices = [
        devices.DeviceInfo(
            id=7,
            name="Custom Microphone",
            max_input_channels=2,
            default_samplerate=48_000.0,
            hostapi="CoreAudio",
            is_default=True,
        )
    ]

    table = devices.format_device_table(custom_devices)

    assert "Custom Microphone" in table
    assert "  7 |" in table
    assert table.rstrip().endswith("*")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, None), ("", None), ("default", None), (" 3 ", 3), ("USB Microphone", "USB Microphone")],
)
def test_parse_device(raw, expected) -> None:
    assert parse_device(raw) == expected


def test_create_microphone_uses_settings(fake_sd) -> None:
    settings = config.Settings(sample_rate=48_000, channels=2, block_size=512, default_mic_device="2")

    capture = create_microphone(settings=settings)
    capture.start()

    stream = fake_sd.streams[-1]
    assert capture.info.sample_rate == 48_000
    assert capture.info.device == "2"
    assert stream.kwargs["device"] == 2
    assert stream.kwargs["blocksize"] == 512
    assert stream.kwargs["channels"] == 2
    capture.close()
    assert stream.closed


def test_capture_start_failure_raises_device_error(fake_sd) -> None:
    from livescribe.core.audio.sounddevice_backend import SoundDeviceCapture

    fake_sd.start_error = _FakePortAudioError("Device unavailable")
    capture = SoundDeviceCapture(CaptureInfo(name="microphone", sample_rate=16_000, channels=1), device=1)

    with pytest.raises(DeviceError) as excinfo:
        capture.start()

    assert "Device unavailable" in str(excinfo.value)
    assert fake_sd.streams[-1].closed


def test_capture_reports_device_loss_after_draining(fake_sd) -> None:
    from livescribe.core.audio.sounddevice_backend import SoundDeviceCapture

    capture = SoundDeviceCapture(CaptureInfo(name="microphone", sample_rate=16_000, channels=1))
    capture.start()
    capture._callback(np.ones((4, 1), dtype=np.float32), 4, None, None)  # pylint: disable=protected-access
    capture._finished()  # pylint: disable=protected-access

    assert capture.read(timeout=0.01).shape == (4, 1)
    with pytest.raises(DeviceError):
        capture.read(timeout=0.01)
