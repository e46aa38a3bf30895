"""Canonical error codes surfaced to API/UI."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_AUDIO = "INVALID_AUDIO"

    ENGINE_LOAD_FAILED = "ENGINE_LOAD_FAILED"
    INFERENCE_FAILED = "INFERENCE_FAILED"
    TRANSLATION_FAILED = "TRANSLATION_FAILED"
    CANCELLED = "CANCELLED"
