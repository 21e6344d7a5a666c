from __future__ import annotations

import math

import numpy as np
import pytest

from livescribe.core.audio.base import AudioCapture, CaptureInfo
from livescribe.core.audio.stream import LiveAudioStream
from livescribe.core.pipeline.silence import SilenceGate


class _IdleCapture(AudioCapture):
    def __init__(self) -> None:
        self.info = CaptureInfo(name="microphone", sample_rate=16_000, channels=1)

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def close(self) -> None:
        pass

    def read(self, timeout=None):
        return None


def _tone(amplitude: float, frames: int = 1600) -> np.ndarray:
    # a square wave has an RMS equal to its amplitude
    signal = np.full(frames, amplitude, dtype=np.float32)
    signal[1::2] *= -1
    return signal


@pytest.mark.parametrize(
    ("amplitude", "expected"),
    [
        (0.001, False),  # -60 dB
        (0.01, True),  # -40 dB
        (0.5, True),
        (0.0, False),
    ],
)
def test_level_classification_against_default_threshold(amplitude: float, expected: bool) -> None:
    gate = SilenceGate()

    level = gate.level_db(_tone(amplitude))

    assert gate.is_audible(level) is expected


def test_threshold_is_exclusive() -> None:
    gate = SilenceGate(threshold_db=-50.0)

    assert not gate.is_audible(-50.0)
    assert gate.is_audible(-49.9)


def test_silence_and_nan_are_not_audible() -> None:
    gate = SilenceGate()

    assert SilenceGate.level_db(np.zeros(10, dtype=np.float32)) == -math.inf
    assert not gate.is_audible(-math.inf)
    assert not gate.is_audible(float("nan"))


def test_disabled_gate_passes_everything() -> None:
    gate = SilenceGate(enabled=False)

    assert gate.is_audible(-math.inf)
    assert gate.classify_rms(0.0)


def test_evaluate_uses_everything_the_tap_captured() -> None:
    stream = LiveAudioStream(_IdleCapture())
    tap = stream.clone()
    stream.feed(_tone(0.0001))
    stream.feed(_tone(0.1))

    audible, level = SilenceGate().evaluate(tap)

    assert audible
    expected = 20 * math.log10(math.sqrt((0.0001**2 + 0.1**2) / 2))
    assert level == pytest.approx(expected, abs=0.01)
