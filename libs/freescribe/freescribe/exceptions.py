"""FreeScribe exception hierarchy."""

from __future__ import annotations

from freescribe.error_codes import ErrorCode


class FreeScribeError(Exception):
    """Base error for FreeScribe."""


class ConfigurationError(FreeScribeError):
    """Raised when configuration or inputs are invalid."""


class InvalidAudioError(ConfigurationError):
    """Raised when an audio source cannot be turned into PCM samples."""

    error_code = ErrorCode.INVALID_AUDIO


class EngineError(FreeScribeError):
    """Raised when an inference engine call fails."""

    def __init__(
        self,
        task: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{task}: {message}")
        self.task = task
        self.message = message
        self.error_code = error_code


class EngineLoadError(EngineError):
    """Raised when a model pipeline cannot be loaded."""

    def __init__(self, task: str, model: str, message: str) -> None:
        super().__init__(task, message, error_code=ErrorCode.ENGINE_LOAD_FAILED)
        self.model = model


class InferenceError(EngineError):
    """Raised when a running inference call fails."""


class InferenceCancelled(FreeScribeError):
    """Raised inside a worker when the in-flight call was cancelled."""

    error_code = ErrorCode.CANCELLED
