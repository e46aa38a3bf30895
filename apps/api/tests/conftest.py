from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from freescribe.config import Settings
from freescribe.models.audio import AudioSample
from freescribe.pipeline import EngineCache
from freescribe.providers.engine.base import (
    Beam,
    EngineTask,
    InferenceBackend,
    LoadProgress,
    TimedText,
)

_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))


class FakeEngine:
    def __init__(self) -> None:
        self.vocab: dict[int, str] = {}

    def decode(self, token_ids: Sequence[int], *, skip_special_tokens: bool = True) -> str:  # noqa: ARG002
        return " ".join(self.vocab.get(int(t), f"w{int(t)}") for t in token_ids)

    def decode_asr(self, chunks: Sequence[Any]) -> list[TimedText]:
        return [TimedText(text=c["text"], start=c["start"], end=c["end"]) for c in chunks]


class FakeBackend(InferenceBackend):
    def __init__(self, chunks: Sequence[dict[str, Any]]) -> None:
        self.chunks = list(chunks)
        self.load_calls: list[tuple[EngineTask, str]] = []

    def load_engine(self, task, model, on_progress=None) -> FakeEngine:  # noqa: ANN001
        self.load_calls.append((task, model))
        if on_progress is not None:
            on_progress(LoadProgress(status="done", file=model))
        return FakeEngine()

    def run_transcription(self, engine, audio, options, on_beam, on_chunk) -> None:  # noqa: ANN001, ARG002
        for item in self.chunks:
            on_beam([Beam(output_token_ids=(1,))])
            on_chunk(item)

    def run_translation(self, engine, texts, src_lang, tgt_lang, on_token_update) -> list[str]:  # noqa: ANN001, ARG002
        outputs: list[str] = []
        for index, text in enumerate(texts):
            token = len(engine.vocab)
            engine.vocab[token] = f"[{tgt_lang}] {text}"
            on_token_update(index, [Beam(output_token_ids=(token,))])
            outputs.append(engine.vocab[token])
        return outputs


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(log_dir=str(tmp_path / "logs"))


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend(
        [
            {"text": " hello", "start": 0.0, "end": 3.2},
            {"text": "world ", "start": 3.2, "end": None},
        ]
    )


@pytest.fixture(autouse=True)
def patch_decode_audio(monkeypatch) -> None:
    async def _decode(data: bytes, **kwargs) -> AudioSample:  # noqa: ARG001
        from freescribe.exceptions import InvalidAudioError

        if data.startswith(b"bad"):
            raise InvalidAudioError("ffmpeg decode failed (code=1): Invalid data")
        return AudioSample(samples=np.zeros(16000, dtype=np.float32))

    monkeypatch.setattr("routes.transcriptions.decode_audio", _decode)


@pytest.fixture()
def app(settings: Settings, backend: FakeBackend) -> FastAPI:
    from main import create_app

    return create_app(settings, backend, engine_cache=EngineCache(backend))


@pytest.fixture()
def client(app: FastAPI):
    with TestClient(app) as c:
        yield c
