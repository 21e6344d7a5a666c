"""Audio processing utilities."""

from __future__ import annotations

import io
import math
import wave
from typing import Iterable

import numpy as np


def to_int16(data: np.ndarray) -> np.ndarray:
    if data.ndim == 1:
        data = data[:, np.newaxis]
    clipped = np.clip(np.asarray(data, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767.0).astype(np.int16)


def pcm16_bytes(data: np.ndarray) -> bytes:
    """Little-endian signed 16-bit PCM, interleaved."""

    return to_int16(data).astype("<i2", copy=False).tobytes()


def encode_wav(chunks: Iterable[np.ndarray], sample_rate: int, channels: int) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)  # 16-bit PCM
        wf.setframerate(sample_rate)
        for chunk in chunks:
            data = to_int16(chunk)
            if data.shape[1] != channels:
                if data.shape[1] == 1:
                    data = np.repeat(data, channels, axis=1)
                else:
                    data = data[:, :channels]
            wf.writeframes(data.tobytes())
    return buffer.getvalue()


def read_wav(payload: bytes) -> tuple[np.ndarray, int]:
    with wave.open(io.BytesIO(payload), "rb") as wf:
        frames = wf.readframes(wf.getnframes())
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
    data = np.frombuffer(frames, dtype=np.int16).astype(np.float32)
    data = data.reshape(-1, channels) / 32767.0
    return data, sample_rate


def amplitude_to_db(rms: float) -> float:
    if rms <= 0.0:
        return -math.inf
    return 20.0 * math.log10(rms)


def rms(samples: np.ndarray) -> float:
    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(data))))


__all__ = [
    "amplitude_to_db",
    "encode_wav",
    "pcm16_bytes",
    "read_wav",
    "rms",
    "to_int16",
]
