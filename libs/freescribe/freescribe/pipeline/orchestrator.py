"""Session orchestrator: routes user intents to workers and folds envelopes into state."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from freescribe.config import Settings
from freescribe.models.audio import AudioSample
from freescribe.models.segment import PartialResult, ProcessedSegment
from freescribe.pipeline.engine_cache import EngineCache, get_engine_cache
from freescribe.pipeline.workers import InferenceWorker, TranscriptionWorker, TranslationWorker
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
    Result,
    ResultPartial,
    TranslationComplete,
    TranslationRequest,
    TranslationUpdate,
    parse_envelope,
)
from freescribe.providers.engine.base import EngineTask, InferenceBackend

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    NO_TARGET_LANGUAGE = "no_target_language"
    TRANSLATION_IN_FLIGHT = "translation_in_flight"
    NO_TRANSCRIPT = "no_transcript"
    TRANSCRIPTION_IN_FLIGHT = "transcription_in_flight"


@dataclass
class TranscriptionState:
    downloading: bool = False
    loading: bool = False
    output: list[ProcessedSegment] | None = None
    partial: PartialResult | None = None
    finished: bool = False
    completed_until: int = 0
    in_flight: bool = False
    cancelled: bool = False
    error_code: str | None = None
    error: str | None = None
    # Set by reset_audio while the superseded call is still winding down.
    discarded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "downloading": self.downloading,
            "loading": self.loading,
            "output": [s.to_dict() for s in self.output] if self.output is not None else None,
            "partial": self.partial.to_dict() if self.partial is not None else None,
            "finished": self.finished,
            "completed_until": self.completed_until,
            "in_flight": self.in_flight,
            "cancelled": self.cancelled,
            "error_code": self.error_code,
            "error": self.error,
        }


@dataclass
class TranslationState:
    translation: str | None = None
    translating: bool = False
    to_language: str | None = None
    cancelled: bool = False
    error_code: str | None = None
    error: str | None = None
    # Set by reset_audio while the superseded call is still winding down.
    discarded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "translation": self.translation,
            "translating": self.translating,
            "to_language": self.to_language,
            "cancelled": self.cancelled,
            "error_code": self.error_code,
            "error": self.error,
        }


@dataclass
class AppState:
    transcription: TranscriptionState = field(default_factory=TranscriptionState)
    translation: TranslationState = field(default_factory=TranslationState)
    last_rejection: RejectionReason | None = None

    def transcript_texts(self) -> list[str]:
        return [s.text for s in list(self.transcription.output or [])]

    def transcript_text(self) -> str:
        return "\n".join(t for t in self.transcript_texts() if t)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transcription": self.transcription.to_dict(),
            "translation": self.translation.to_dict(),
            "last_rejection": self.last_rejection.value if self.last_rejection else None,
        }


StateHook = Callable[[AppState], Awaitable[None]]

_TRANSCRIPTION_ENVELOPES = (
    Downloading,
    Loading,
    ResultPartial,
    Result,
    InferenceDone,
    Cancelled,
    LoadFailed,
    InferenceFailed,
)

_TRANSLATION_ENVELOPES = (
    Downloading,
    Loading,
    TranslationUpdate,
    TranslationComplete,
    Cancelled,
    LoadFailed,
    InferenceFailed,
)


@dataclass
class _Session:
    worker: InferenceWorker
    inbox: Channel[Envelope]
    outbox: Channel[Envelope]
    listener: asyncio.Task[None]
    idle: asyncio.Event


class Orchestrator:
    """Owns one worker per task type and the application state they feed.

    Intents never wait for a worker: they post a request and return. Standing
    listener tasks apply envelopes to `state` in the order each worker sent them.
    """

    def __init__(
        self,
        settings: Settings,
        backend: InferenceBackend,
        *,
        engine_cache: EngineCache | None = None,
        on_state_change: StateHook | None = None,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.engine_cache = engine_cache or get_engine_cache(backend)
        self.state = AppState()
        self._on_state_change = on_state_change
        self._sessions: dict[EngineTask, _Session] = {}

    async def __aenter__(self) -> "Orchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def started(self) -> bool:
        return bool(self._sessions)

    async def start(self) -> None:
        if self._sessions:
            return
        maxsize = int(self.settings.channel.maxsize)
        for task, worker_cls in (
            (EngineTask.TRANSCRIPTION, TranscriptionWorker),
            (EngineTask.TRANSLATION, TranslationWorker),
        ):
            inbox: Channel[Envelope] = Channel(f"{task.name.lower()}-inbox", maxsize=maxsize)
            outbox: Channel[Envelope] = Channel(f"{task.name.lower()}-outbox", maxsize=maxsize)
            worker = worker_cls(self.settings, self.engine_cache, inbox=inbox, outbox=outbox)
            worker.start()
            idle = asyncio.Event()
            idle.set()
            listener = asyncio.create_task(self._listen(task, outbox), name=f"{task.name.lower()}-listener")
            self._sessions[task] = _Session(
                worker=worker, inbox=inbox, outbox=outbox, listener=listener, idle=idle
            )
        logger.info("orchestrator started")

    async def close(self, timeout: float | None = 5.0) -> None:
        sessions = list(self._sessions.values())
        self._sessions = {}
        for session in sessions:
            session.inbox.close()
        for session in sessions:
            await session.worker.stop(timeout=timeout)
            session.outbox.close()
        for session in sessions:
            try:
                await asyncio.wait_for(session.listener, timeout=timeout)
            except asyncio.TimeoutError:
                session.listener.cancel()
        logger.info("orchestrator closed")

    # -- intents ---------------------------------------------------------

    def transcribe(self, audio: AudioSample, model_name: str | None = None) -> RejectionReason | None:
        ts = self.state.transcription
        if ts.in_flight:
            return self._reject(RejectionReason.TRANSCRIPTION_IN_FLIGHT)

        session = self._session(EngineTask.TRANSCRIPTION)
        self.state.transcription = TranscriptionState(in_flight=True)
        self.state.last_rejection = None
        session.idle.clear()
        model = str(model_name or self.settings.transcription.model)
        logger.info("transcription requested (model=%s, duration_s=%.1f)", model, audio.duration_s)
        session.inbox.send(InferenceRequest(audio=audio, model_name=model))
        return None

    def translate(
        self,
        to_language: str | None,
        *,
        source_language: str | None = None,
    ) -> RejectionReason | None:
        cfg = self.settings.translation
        tr = self.state.translation
        if tr.translating:
            return self._reject(RejectionReason.TRANSLATION_IN_FLIGHT)
        target = str(to_language or "").strip()
        if not target or target == cfg.unset_language:
            return self._reject(RejectionReason.NO_TARGET_LANGUAGE)
        texts = self.state.transcript_texts()
        if not texts:
            return self._reject(RejectionReason.NO_TRANSCRIPT)

        session = self._session(EngineTask.TRANSLATION)
        self.state.translation = TranslationState(
            translation=tr.translation, translating=True, to_language=target
        )
        self.state.last_rejection = None
        session.idle.clear()
        src = str(source_language or cfg.source_language)
        logger.info("translation requested (src=%s, tgt=%s, texts=%d)", src, target, len(texts))
        session.inbox.send(TranslationRequest(text=tuple(texts), src_lang=src, tgt_lang=target))
        return None

    def cancel(self, task: EngineTask = EngineTask.TRANSCRIPTION) -> bool:
        """Ask the worker to stop its in-flight call at the next safe point."""
        session = self._sessions.get(task)
        if session is None or session.idle.is_set():
            return False
        logger.info("cancel requested (task=%s)", task.value)
        return session.inbox.send(CancelRequest())

    def reset_audio(self) -> None:
        """Discard the current audio, transcript and translation, stopping running calls.

        A call that is still winding down keeps its in-flight flag until its
        terminal envelope arrives, so new requests stay rejected until then.
        """
        self.cancel(EngineTask.TRANSCRIPTION)
        self.cancel(EngineTask.TRANSLATION)
        in_flight = self.state.transcription.in_flight
        self.state.transcription = TranscriptionState(in_flight=in_flight, discarded=in_flight)
        translating = self.state.translation.translating
        self.state.translation = TranslationState(translating=translating, discarded=translating)

    async def wait_for_transcription(self, timeout: float | None = None) -> TranscriptionState:
        await asyncio.wait_for(self._session(EngineTask.TRANSCRIPTION).idle.wait(), timeout=timeout)
        return self.state.transcription

    async def wait_for_translation(self, timeout: float | None = None) -> TranslationState:
        await asyncio.wait_for(self._session(EngineTask.TRANSLATION).idle.wait(), timeout=timeout)
        return self.state.translation

    # -- envelopes -------------------------------------------------------

    async def apply(self, task: EngineTask, message: Any) -> bool:
        """Fold one envelope into state. Returns False when it was ignored."""
        envelope = parse_envelope(message)
        if envelope is None:
            return False

        if task == EngineTask.TRANSCRIPTION:
            handled = self._apply_transcription(envelope)
            terminal = envelope.type in TRANSCRIPTION_TERMINAL
        else:
            handled = self._apply_translation(envelope)
            terminal = envelope.type in TRANSLATION_TERMINAL
        if not handled:
            logger.debug("ignoring %s envelope for %s", envelope.type.value, task.value)
            return False

        if terminal:
            session = self._sessions.get(task)
            if session is not None:
                session.idle.set()
        await self._notify_update()
        return True

    def _apply_transcription(self, envelope: Envelope) -> bool:
        ts = self.state.transcription
        if ts.discarded and isinstance(envelope, _TRANSCRIPTION_ENVELOPES):
            if envelope.type in TRANSCRIPTION_TERMINAL:
                ts.in_flight = False
                ts.discarded = False
            return True

        match envelope:
            case Downloading():
                ts.downloading = envelope.status != "done"
            case Loading(status="loading"):
                ts.loading = True
            case Loading(status="success"):
                ts.loading = False
                ts.downloading = False
            case ResultPartial():
                ts.partial = envelope.result
            case Result():
                ts.output = list(envelope.results)
                ts.partial = None
                ts.completed_until = int(envelope.completed_until)
                ts.finished = bool(envelope.is_done)
            case InferenceDone():
                ts.finished = True
                ts.partial = None
                ts.in_flight = False
            case Cancelled():
                ts.cancelled = True
                ts.in_flight = False
                ts.loading = False
            case LoadFailed() | InferenceFailed():
                ts.error_code = envelope.error_code
                ts.error = envelope.message
                ts.in_flight = False
                ts.loading = False
                ts.downloading = False
            case _:
                return False
        return True

    def _apply_translation(self, envelope: Envelope) -> bool:
        tr = self.state.translation
        if tr.discarded and isinstance(envelope, _TRANSLATION_ENVELOPES):
            if envelope.type in TRANSLATION_TERMINAL:
                tr.translating = False
                tr.discarded = False
            return True

        match envelope:
            case Downloading() | Loading():
                pass
            case TranslationUpdate():
                tr.translation = envelope.output
            case TranslationComplete():
                tr.translation = envelope.output
                tr.translating = False
            case Cancelled():
                tr.cancelled = True
                tr.translating = False
            case LoadFailed() | InferenceFailed():
                tr.error_code = envelope.error_code
                tr.error = envelope.message
                tr.translating = False
            case _:
                return False
        return True

    # -- internals -------------------------------------------------------

    async def _listen(self, task: EngineTask, outbox: Channel[Envelope]) -> None:
        async for message in outbox:
            try:
                await self.apply(task, message)
            except Exception:
                logger.exception("failed to apply envelope (task=%s)", task.value)

    async def _notify_update(self) -> None:
        if self._on_state_change is not None:
            await self._on_state_change(self.state)

    def _session(self, task: EngineTask) -> _Session:
        session = self._sessions.get(task)
        if session is None:
            raise RuntimeError("orchestrator not started")
        return session

    def _reject(self, reason: RejectionReason) -> RejectionReason:
        logger.warning("request rejected (reason=%s)", reason.value)
        self.state.last_rejection = reason
        return reason
