"""Inference engine boundary.

The core never runs a neural network itself. It asks a backend for an engine
handle, starts a transcription or translation call, and reacts to the
callbacks the backend fires while the call runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Protocol

from freescribe.models.audio import AudioSample


class EngineTask(str, Enum):
    TRANSCRIPTION = "automatic-speech-recognition"
    TRANSLATION = "translation"


LoadStatus = Literal["initiate", "progress", "done"]


@dataclass(frozen=True)
class LoadProgress:
    """One model download/load progress event."""

    status: LoadStatus
    file: str | None = None
    progress: float | None = None
    loaded: int | None = None
    total: int | None = None


@dataclass(frozen=True)
class Beam:
    """A candidate decode; the engine ranks beams best-first."""

    output_token_ids: tuple[int, ...]


@dataclass(frozen=True)
class TimedText:
    """A text span with its timestamp, as returned by a timestamped ASR decode."""

    text: str
    start: float
    end: float | None = None


@dataclass(frozen=True)
class TranscriptionOptions:
    chunk_length_s: float = 30.0
    stride_length_s: float = 5.0
    top_k: int = 0
    do_sample: bool = False
    return_timestamps: bool = True


ProgressCallback = Callable[[LoadProgress], None]
BeamCallback = Callable[[Sequence[Beam]], None]
ChunkCallback = Callable[[Any], None]
TokenUpdateCallback = Callable[[int, Sequence[Beam]], None]


class TranscriptionEngine(Protocol):
    def decode(self, token_ids: Sequence[int], *, skip_special_tokens: bool = True) -> str: ...

    def decode_asr(self, chunks: Sequence[Any]) -> list[TimedText]: ...


class TranslationEngine(Protocol):
    def decode(self, token_ids: Sequence[int], *, skip_special_tokens: bool = True) -> str: ...


class InferenceBackend(ABC):
    """Abstract base class for inference backends."""

    @abstractmethod
    def load_engine(
        self,
        task: EngineTask,
        model: str,
        on_progress: ProgressCallback | None = None,
    ) -> Any:
        """Load a model pipeline for a task.

        Args:
            task: Which pipeline to build.
            model: Model identifier (hub repo id or local path).
            on_progress: Receives download/load progress events.

        Returns:
            An engine handle (`TranscriptionEngine` or `TranslationEngine`).
        """
        ...

    @abstractmethod
    def run_transcription(
        self,
        engine: TranscriptionEngine,
        audio: AudioSample,
        options: TranscriptionOptions,
        on_beam: BeamCallback,
        on_chunk: ChunkCallback,
    ) -> None:
        """Run chunked speech recognition.

        `on_beam` fires for every generation step with the current beams;
        `on_chunk` fires once per finished chunk with the raw chunk output that
        `TranscriptionEngine.decode_asr` understands. Exceptions raised by a
        callback abort the call and propagate.
        """
        ...

    @abstractmethod
    def run_translation(
        self,
        engine: TranslationEngine,
        texts: Sequence[str],
        src_lang: str,
        tgt_lang: str,
        on_token_update: TokenUpdateCallback,
    ) -> list[str]:
        """Translate each text, streaming token updates.

        `on_token_update(index, beams)` carries the index of the text being
        translated and the beams generated so far for it.

        Returns:
            One final translation per input text.
        """
        ...
