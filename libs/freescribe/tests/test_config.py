from __future__ import annotations

import pytest
from pydantic import ValidationError

from freescribe.config import Settings, TranscriptionConfig
from freescribe.exceptions import ConfigurationError


def test_defaults(settings: Settings) -> None:
    assert settings.engine.provider == "transformers"
    assert settings.transcription.model == "openai/whisper-tiny.en"
    assert settings.transcription.partial_every == 10
    assert settings.transcription.stride_length_s == 5.0
    assert settings.translation.unset_language == "Select language"
    assert settings.translation.source_language == "eng_Latn"
    assert settings.channel.maxsize == 256


def test_groups_read_their_env_prefix(monkeypatch) -> None:
    monkeypatch.setenv("TRANSCRIPTION_MODEL", "openai/whisper-base")
    monkeypatch.setenv("TRANSCRIPTION_PARTIAL_EVERY", "5")

    cfg = TranscriptionConfig()

    assert cfg.model == "openai/whisper-base"
    assert cfg.partial_every == 5


def test_stride_must_be_less_than_half_the_chunk() -> None:
    with pytest.raises((ConfigurationError, ValidationError)):
        TranscriptionConfig(chunk_length_s=10.0, stride_length_s=5.0)


def test_partial_every_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        TranscriptionConfig(partial_every=0)


def test_engine_config_normalizes_provider(settings: Settings) -> None:
    settings.engine.provider = "  HuggingFace "
    assert settings.engine_config()["provider"] == "huggingface"

    settings.engine.provider = ""
    with pytest.raises(ConfigurationError):
        settings.engine_config()


def test_relative_log_dir_is_resolved() -> None:
    settings = Settings(log_dir="./logs")
    assert settings.log_dir.endswith("logs")
    assert settings.log_dir.startswith("/")
