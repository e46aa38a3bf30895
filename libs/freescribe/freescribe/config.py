"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from freescribe.exceptions import ConfigurationError

_ENV_FILES = (".env", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class EngineConfig(BaseSettings):
    """Inference engine backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ENGINE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "transformers"
    device: str | None = None
    cache_dir: str | None = None
    # Always fetch from the hub unless explicitly told to stay offline.
    local_files_only: bool = False


class TranscriptionConfig(BaseSettings):
    """Speech-to-text generation parameters."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIPTION_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    model: str = "openai/whisper-tiny.en"
    sampling_rate: int = Field(default=16000, gt=0)
    chunk_length_s: float = Field(default=30.0, gt=0)
    stride_length_s: float = Field(default=5.0, ge=0)
    top_k: int = Field(default=0, ge=0)
    do_sample: bool = False
    partial_every: int = Field(
        default=10,
        ge=1,
        description="Emit one partial result every N beam callbacks.",
    )

    @model_validator(mode="after")
    def _validate_window(self) -> "TranscriptionConfig":
        if float(self.stride_length_s) * 2 >= float(self.chunk_length_s):
            raise ConfigurationError(
                "TRANSCRIPTION_STRIDE_LENGTH_S must be less than half of TRANSCRIPTION_CHUNK_LENGTH_S"
            )
        return self


class TranslationConfig(BaseSettings):
    """Machine translation parameters."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSLATION_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    model: str = "facebook/nllb-200-distilled-600M"
    source_language: str = "eng_Latn"
    unset_language: str = "Select language"
    separator: str = " "


class ChannelConfig(BaseSettings):
    """Worker channel limits."""

    model_config = SettingsConfigDict(
        env_prefix="CHANNEL_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    maxsize: int = Field(default=256, ge=1)


class AudioConfig(BaseSettings):
    """Audio ingestion configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIO_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ffmpeg_bin: str = "ffmpeg"
    max_duration_s: float | None = Field(default=None, gt=0)
    upload_max_bytes: int = Field(default=200 * 1024 * 1024, ge=1)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)
    library_level: str = "WARNING"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    log_dir: str = "./logs"

    engine: EngineConfig = EngineConfig()
    transcription: TranscriptionConfig = TranscriptionConfig()
    translation: TranslationConfig = TranslationConfig()
    channel: ChannelConfig = ChannelConfig()
    audio: AudioConfig = AudioConfig()

    logging: LoggingSettings = LoggingSettings()

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        # Apps run from their own directory; keep paths stable.
        self.log_dir = _resolve_repo_path(self.log_dir)
        return self

    def engine_config(self) -> dict[str, Any]:
        """Return an engine config dict for the provider registry."""
        cfg = self.engine.model_dump()
        provider = str(cfg.get("provider") or "").strip().lower()
        if not provider:
            raise ConfigurationError("Inference engine is not configured (missing provider)")
        cfg["provider"] = provider
        return cfg
