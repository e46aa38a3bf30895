from __future__ import annotations

import numpy as np
import pytest

from freescribe.error_codes import ErrorCode
from freescribe.exceptions import InferenceCancelled, InferenceError
from freescribe.models.audio import AudioSample
from freescribe.providers.engine.base import TranscriptionOptions
from freescribe.providers.engine.transformers_backend import (
    TransformersBackend,
    TransformersTranscriptionEngine,
    TransformersTranslationEngine,
)


class _TranslationPipe:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def __call__(self, text, *, src_lang, tgt_lang, streamer):  # noqa: ANN001, ARG002
        streamer.put(np.array([[2]]))  # decoder prompt
        streamer.put(np.array([[7]]))
        if self.error is not None:
            raise self.error
        return [{"translation_text": text.upper()}]


class _AsrPipe:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def _sanitize_parameters(self, **kwargs):  # noqa: ANN003, ARG002
        return {}, {}, {}

    def preprocess(self, inputs, **kwargs):  # noqa: ANN001, ARG002
        yield {"input_features": inputs["raw"]}

    def forward(self, model_inputs, **kwargs):  # noqa: ANN001, ARG002
        if self.error is not None:
            raise self.error
        return {"tokens": [1, 2, 3]}


def _audio() -> AudioSample:
    return AudioSample(samples=np.zeros(1600, dtype=np.float32))


def test_translation_streams_token_updates_per_text() -> None:
    updates: list[tuple[int, tuple[int, ...]]] = []
    engine = TransformersTranslationEngine(_TranslationPipe())

    out = TransformersBackend().run_translation(
        engine,
        ["hola", "  ", "adios"],
        "spa_Latn",
        "eng_Latn",
        lambda index, beams: updates.append((index, beams[0].output_token_ids)),
    )

    assert out == ["HOLA", "", "ADIOS"]
    assert updates == [(0, (2, 7)), (2, (2, 7))]


def test_translation_engine_failure_is_wrapped() -> None:
    engine = TransformersTranslationEngine(_TranslationPipe(error=RuntimeError("unknown tgt_lang")))

    with pytest.raises(InferenceError) as exc_info:
        TransformersBackend().run_translation(engine, ["hola"], "spa_Latn", "xx", lambda i, b: None)

    assert exc_info.value.error_code == ErrorCode.TRANSLATION_FAILED
    assert exc_info.value.task == "translation"
    assert "unknown tgt_lang" in str(exc_info.value)


def test_transcription_engine_failure_is_wrapped() -> None:
    engine = TransformersTranscriptionEngine(_AsrPipe(error=RuntimeError("CUDA out of memory")))

    with pytest.raises(InferenceError) as exc_info:
        TransformersBackend().run_transcription(
            engine, _audio(), TranscriptionOptions(), lambda beams: None, lambda chunk: None
        )

    assert exc_info.value.error_code == ErrorCode.INFERENCE_FAILED
    assert str(exc_info.value) == "automatic-speech-recognition: CUDA out of memory"


def test_cancellation_from_callbacks_is_not_wrapped() -> None:
    engine = TransformersTranscriptionEngine(_AsrPipe())

    def _cancel(chunk) -> None:  # noqa: ANN001, ARG001
        raise InferenceCancelled("inference cancelled")

    with pytest.raises(InferenceCancelled):
        TransformersBackend().run_transcription(
            engine, _audio(), TranscriptionOptions(), lambda beams: None, _cancel
        )
