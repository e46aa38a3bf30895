"""Worker message protocol."""

from freescribe.protocol.channel import Channel
from freescribe.protocol.messages import (
    TRANSCRIPTION_TERMINAL,
    TRANSLATION_TERMINAL,
    CancelRequest,
    Cancelled,
    Downloading,
    Envelope,
    InferenceDone,
    InferenceFailed,
    InferenceRequest,
    LoadFailed,
    Loading,
    MessageType,
    Result,
    ResultPartial,
    TranslationComplete,
    TranslationRequest,
    TranslationUpdate,
    parse_envelope,
)

__all__ = [
    "Channel",
    "CancelRequest",
    "Cancelled",
    "Downloading",
    "Envelope",
    "InferenceDone",
    "InferenceFailed",
    "InferenceRequest",
    "LoadFailed",
    "Loading",
    "MessageType",
    "Result",
    "ResultPartial",
    "TRANSCRIPTION_TERMINAL",
    "TRANSLATION_TERMINAL",
    "TranslationComplete",
    "TranslationRequest",
    "TranslationUpdate",
    "parse_envelope",
]
