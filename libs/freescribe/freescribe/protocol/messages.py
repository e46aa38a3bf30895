"""Envelopes exchanged between the orchestrator and worker-hosted tasks.

Both task families share one tagged schema discriminated by `type`. Delivery
is in send order per channel, at most once, and never acknowledged. Receivers
ignore kinds they do not know so the set can grow without breaking them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Literal, Union

import numpy as np

from freescribe.models.audio import SAMPLING_RATE, AudioSample
from freescribe.models.segment import PartialResult, ProcessedSegment
from freescribe.providers.engine.base import LoadStatus

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    # worker -> orchestrator
    DOWNLOADING = "DOWNLOADING"
    LOADING = "LOADING"
    LOAD_FAILED = "LOAD_FAILED"
    RESULT_PARTIAL = "RESULT_PARTIAL"
    RESULT = "RESULT"
    INFERENCE_DONE = "INFERENCE_DONE"
    INFERENCE_FAILED = "INFERENCE_FAILED"
    CANCELLED = "CANCELLED"
    TRANSLATION_UPDATE = "TRANSLATION_UPDATE"
    TRANSLATION_COMPLETE = "TRANSLATION_COMPLETE"

    # orchestrator -> worker
    INFERENCE_REQUEST = "INFERENCE_REQUEST"
    TRANSLATION_REQUEST = "TRANSLATION_REQUEST"
    CANCEL_REQUEST = "CANCEL_REQUEST"


class _Envelope:
    type: ClassVar[MessageType]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, **asdict(self)}  # type: ignore[call-overload]


@dataclass(frozen=True)
class Downloading(_Envelope):
    type: ClassVar[MessageType] = MessageType.DOWNLOADING

    status: LoadStatus
    file: str | None = None
    progress: float | None = None
    loaded: int | None = None
    total: int | None = None


@dataclass(frozen=True)
class Loading(_Envelope):
    type: ClassVar[MessageType] = MessageType.LOADING

    status: Literal["loading", "success"]


@dataclass(frozen=True)
class LoadFailed(_Envelope):
    type: ClassVar[MessageType] = MessageType.LOAD_FAILED

    model_name: str
    error_code: str
    message: str


@dataclass(frozen=True)
class ResultPartial(_Envelope):
    type: ClassVar[MessageType] = MessageType.RESULT_PARTIAL

    result: PartialResult


@dataclass(frozen=True)
class Result(_Envelope):
    """Full transcript snapshot; replaces whatever the receiver held before."""

    type: ClassVar[MessageType] = MessageType.RESULT

    results: tuple[ProcessedSegment, ...] = field(default_factory=tuple)
    is_done: bool = False
    completed_until: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "results", tuple(self.results))


@dataclass(frozen=True)
class InferenceDone(_Envelope):
    type: ClassVar[MessageType] = MessageType.INFERENCE_DONE


@dataclass(frozen=True)
class InferenceFailed(_Envelope):
    type: ClassVar[MessageType] = MessageType.INFERENCE_FAILED

    error_code: str
    message: str


@dataclass(frozen=True)
class Cancelled(_Envelope):
    type: ClassVar[MessageType] = MessageType.CANCELLED


@dataclass(frozen=True)
class TranslationUpdate(_Envelope):
    """Cumulative decoded translation so far (replacement, not a delta)."""

    type: ClassVar[MessageType] = MessageType.TRANSLATION_UPDATE

    output: str


@dataclass(frozen=True)
class TranslationComplete(_Envelope):
    type: ClassVar[MessageType] = MessageType.TRANSLATION_COMPLETE

    output: str


@dataclass(frozen=True)
class InferenceRequest(_Envelope):
    type: ClassVar[MessageType] = MessageType.INFERENCE_REQUEST

    audio: AudioSample
    model_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "audio": self.audio.samples.tolist(),
            "sampling_rate": self.audio.sampling_rate,
            "model_name": self.model_name,
        }


@dataclass(frozen=True)
class TranslationRequest(_Envelope):
    type: ClassVar[MessageType] = MessageType.TRANSLATION_REQUEST

    text: tuple[str, ...]
    src_lang: str
    tgt_lang: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", tuple(str(t) for t in self.text))


@dataclass(frozen=True)
class CancelRequest(_Envelope):
    type: ClassVar[MessageType] = MessageType.CANCEL_REQUEST


Envelope = Union[
    Downloading,
    Loading,
    LoadFailed,
    ResultPartial,
    Result,
    InferenceDone,
    InferenceFailed,
    Cancelled,
    TranslationUpdate,
    TranslationComplete,
    InferenceRequest,
    TranslationRequest,
    CancelRequest,
]

TRANSCRIPTION_TERMINAL: frozenset[MessageType] = frozenset(
    {
        MessageType.INFERENCE_DONE,
        MessageType.LOAD_FAILED,
        MessageType.INFERENCE_FAILED,
        MessageType.CANCELLED,
    }
)
TRANSLATION_TERMINAL: frozenset[MessageType] = frozenset(
    {
        MessageType.TRANSLATION_COMPLETE,
        MessageType.LOAD_FAILED,
        MessageType.INFERENCE_FAILED,
        MessageType.CANCELLED,
    }
)


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _parse_downloading(item: Mapping[str, Any]) -> Downloading:
    status = str(item["status"])
    if status not in {"initiate", "progress", "done"}:
        raise ValueError(f"unknown download status: {status!r}")
    return Downloading(
        status=status,  # type: ignore[arg-type]
        file=item.get("file"),
        progress=_optional_float(item.get("progress")),
        loaded=_optional_int(item.get("loaded")),
        total=_optional_int(item.get("total")),
    )


def _parse_loading(item: Mapping[str, Any]) -> Loading:
    status = str(item["status"])
    if status not in {"loading", "success"}:
        raise ValueError(f"unknown loading status: {status!r}")
    return Loading(status=status)  # type: ignore[arg-type]


def _parse_inference_request(item: Mapping[str, Any]) -> InferenceRequest:
    audio = AudioSample(
        samples=np.asarray(item["audio"], dtype=np.float32),
        sampling_rate=int(item.get("sampling_rate") or SAMPLING_RATE),
    )
    return InferenceRequest(audio=audio, model_name=str(item["model_name"]))


_PARSERS: dict[MessageType, Callable[[Mapping[str, Any]], Envelope]] = {
    MessageType.DOWNLOADING: _parse_downloading,
    MessageType.LOADING: _parse_loading,
    MessageType.LOAD_FAILED: lambda item: LoadFailed(
        model_name=str(item["model_name"]),
        error_code=str(item["error_code"]),
        message=str(item.get("message") or ""),
    ),
    MessageType.RESULT_PARTIAL: lambda item: ResultPartial(
        result=PartialResult.from_dict(dict(item["result"]))
    ),
    MessageType.RESULT: lambda item: Result(
        results=tuple(ProcessedSegment.from_dict(dict(r)) for r in item["results"]),
        is_done=bool(item.get("is_done", False)),
        completed_until=int(item.get("completed_until") or 0),
    ),
    MessageType.INFERENCE_DONE: lambda item: InferenceDone(),
    MessageType.INFERENCE_FAILED: lambda item: InferenceFailed(
        error_code=str(item["error_code"]),
        message=str(item.get("message") or ""),
    ),
    MessageType.CANCELLED: lambda item: Cancelled(),
    MessageType.TRANSLATION_UPDATE: lambda item: TranslationUpdate(output=str(item["output"])),
    MessageType.TRANSLATION_COMPLETE: lambda item: TranslationComplete(output=str(item["output"])),
    MessageType.INFERENCE_REQUEST: _parse_inference_request,
    MessageType.TRANSLATION_REQUEST: lambda item: TranslationRequest(
        text=tuple(item["text"]),
        src_lang=str(item["src_lang"]),
        tgt_lang=str(item["tgt_lang"]),
    ),
    MessageType.CANCEL_REQUEST: lambda item: CancelRequest(),
}


def parse_envelope(payload: Any) -> Envelope | None:
    """Turn a wire payload into an envelope.

    Returns None for unknown kinds and malformed payloads; never raises.
    """
    if isinstance(payload, _Envelope):
        return payload  # type: ignore[return-value]
    if not isinstance(payload, Mapping):
        logger.debug("ignoring non-mapping envelope: %r", type(payload).__name__)
        return None

    raw_type = payload.get("type")
    try:
        kind = MessageType(str(raw_type))
    except ValueError:
        logger.debug("ignoring unknown envelope type: %r", raw_type)
        return None

    try:
        return _PARSERS[kind](payload)
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("ignoring malformed %s envelope: %s", kind.value, exc)
        return None
