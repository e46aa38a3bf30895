"""Inference engine boundary and implementations."""

from freescribe.providers.engine.base import (
    Beam,
    EngineTask,
    InferenceBackend,
    LoadProgress,
    TimedText,
    TranscriptionEngine,
    TranscriptionOptions,
    TranslationEngine,
)

__all__ = [
    "Beam",
    "EngineTask",
    "InferenceBackend",
    "LoadProgress",
    "TimedText",
    "TranscriptionEngine",
    "TranscriptionOptions",
    "TranslationEngine",
]
