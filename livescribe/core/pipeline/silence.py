"""Local energy gate that drops silent segments before they reach a provider."""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from ...utils.audio import amplitude_to_db, rms
from ..audio.stream import StreamTap

DEFAULT_SILENCE_THRESHOLD_DB = -50.0


class SilenceGate:
    """Classify audio as audible when its RMS level in dB exceeds the threshold."""

    def __init__(self, threshold_db: float = DEFAULT_SILENCE_THRESHOLD_DB, enabled: bool = True) -> None:
        self.threshold_db = float(threshold_db)
        self.enabled = enabled

    @staticmethod
    def level_db(samples: np.ndarray) -> float:
        return amplitude_to_db(rms(samples))

    def is_audible(self, level_db: float) -> bool:
        if not self.enabled:
            return True
        if math.isnan(level_db):
            return False
        return level_db > self.threshold_db

    def classify_rms(self, value: float) -> bool:
        return self.is_audible(amplitude_to_db(value))

    def evaluate(self, tap: StreamTap) -> Tuple[bool, float]:
        """Classify everything a tap has captured so far; returns ``(audible, level_db)``."""

        level = amplitude_to_db(tap.rms)
        return self.is_audible(level), level


__all__ = ["DEFAULT_SILENCE_THRESHOLD_DB", "SilenceGate"]
