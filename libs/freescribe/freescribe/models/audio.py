"""Audio sample model."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

SAMPLING_RATE = 16000


@dataclass(frozen=True)
class AudioSample:
    """Mono float32 PCM in [-1, 1] at a fixed sampling rate.

    The backing array is made read-only so a sample can be handed to a
    worker thread without copying.
    """

    samples: np.ndarray
    sampling_rate: int = SAMPLING_RATE

    def __post_init__(self) -> None:
        arr = np.asarray(self.samples, dtype=np.float32)
        if arr.ndim != 1:
            raise ValueError(f"Expected 1D mono audio. Got shape={arr.shape!r}")
        if int(self.sampling_rate) <= 0:
            raise ValueError("sampling_rate must be positive")
        if arr.flags.writeable:
            arr = arr.copy()
            arr.setflags(write=False)
        object.__setattr__(self, "samples", arr)
        object.__setattr__(self, "sampling_rate", int(self.sampling_rate))

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_s(self) -> float:
        return len(self) / float(self.sampling_rate)

    @classmethod
    def from_pcm16(cls, data: bytes, sampling_rate: int = SAMPLING_RATE) -> "AudioSample":
        audio_np = np.frombuffer(data, dtype=np.int16).astype(np.float32)
        audio_np /= 32768.0  # Normalize to [-1, 1]
        return cls(samples=audio_np, sampling_rate=sampling_rate)

    @classmethod
    def from_f32le(cls, data: bytes, sampling_rate: int = SAMPLING_RATE) -> "AudioSample":
        usable = len(data) - (len(data) % 4)
        audio_np = np.frombuffer(data[:usable], dtype="<f4")
        return cls(samples=np.clip(audio_np, -1.0, 1.0), sampling_rate=sampling_rate)
