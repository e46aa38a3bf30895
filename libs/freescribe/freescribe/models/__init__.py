"""Core data models for FreeScribe."""

from freescribe.models.audio import SAMPLING_RATE, AudioSample
from freescribe.models.segment import PartialResult, ProcessedSegment

__all__ = [
    "AudioSample",
    "PartialResult",
    "ProcessedSegment",
    "SAMPLING_RATE",
]
