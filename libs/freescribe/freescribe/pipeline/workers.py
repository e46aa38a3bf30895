"""Worker contexts hosting the long-running inference calls.

Each worker owns a single-thread executor, so a task type never runs more than
one inference call at a time and the engine never runs on the orchestrating
event loop. Requests arrive on the worker's inbox channel; everything the call
produces goes out on its outbox channel as envelopes.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor

from freescribe.config import Settings
from freescribe.error_codes import ErrorCode
from freescribe.exceptions import EngineLoadError, InferenceCancelled
from freescribe.pipeline.cancellation import CancellationToken
from freescribe.pipeline.engine_cache import EngineCache
from freescribe.pipeline.generation_tracker import GenerationTracker
from freescribe.pipeline.translation_decoder import TranslationStreamDecoder
from freescribe.protocol.channel import Channel
from freescribe.protocol.messages import (
    CancelRequest,
    Cancelled,
    Downloading,
    Envelope,
    InferenceRequest,
    LoadFailed,
    Loading,
    TranslationRequest,
    parse_envelope,
)
from freescribe.providers.engine.base import EngineTask, LoadProgress, TranscriptionOptions

logger = logging.getLogger(__name__)


class InferenceWorker(ABC):
    """Base worker: inbox dispatch, sequential execution, cancellation."""

    task: EngineTask

    def __init__(
        self,
        settings: Settings,
        engine_cache: EngineCache,
        *,
        inbox: Channel[Envelope],
        outbox: Channel[Envelope],
    ) -> None:
        self.settings = settings
        self.engine_cache = engine_cache
        self.inbox = inbox
        self.outbox = outbox
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"freescribe-{self.name}")
        self._pending: asyncio.Queue[tuple[Envelope, CancellationToken] | None] = asyncio.Queue()
        self._tokens: list[CancellationToken] = []
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def name(self) -> str:
        return "transcription" if self.task == EngineTask.TRANSCRIPTION else "translation"

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._dispatch(), name=f"{self.name}-dispatch"),
            asyncio.create_task(self._process(), name=f"{self.name}-process"),
        ]

    async def stop(self, timeout: float | None = 5.0) -> None:
        """Cancel outstanding calls and wait for the worker loops to exit.

        The inbox must be closed by its owner first. A call stuck inside the
        engine keeps its thread until the next cancellation check.
        """
        for token in list(self._tokens):
            token.cancel()
        if self._tasks:
            _done, pending = await asyncio.wait(self._tasks, timeout=timeout)
            for t in pending:
                t.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._tasks = []

    def emit(self, envelope: Envelope) -> None:
        self.outbox.send(envelope)

    async def _dispatch(self) -> None:
        async for message in self.inbox:
            envelope = parse_envelope(message)
            if envelope is None:
                continue
            if isinstance(envelope, CancelRequest):
                if self._tokens:
                    logger.info("%s cancel requested (outstanding=%d)", self.name, len(self._tokens))
                for token in list(self._tokens):
                    token.cancel()
                continue
            token = CancellationToken()
            self._tokens.append(token)
            self._pending.put_nowait((envelope, token))
        self._pending.put_nowait(None)

    async def _process(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            item = await self._pending.get()
            if item is None:
                return
            envelope, token = item
            try:
                await loop.run_in_executor(self._executor, self._run, envelope, token)
            except Exception:
                logger.exception("%s worker crashed (request=%s)", self.name, envelope.type.value)
            finally:
                if token in self._tokens:
                    self._tokens.remove(token)

    def _run(self, envelope: Envelope, token: CancellationToken) -> None:
        if token.cancelled:
            logger.info("%s request cancelled before start", self.name)
            self.emit(Cancelled())
            return
        self.handle(envelope, token)

    def _forward_progress(self, event: LoadProgress) -> None:
        self.emit(
            Downloading(
                status=event.status,
                file=event.file,
                progress=event.progress,
                loaded=event.loaded,
                total=event.total,
            )
        )

    @abstractmethod
    def handle(self, envelope: Envelope, token: CancellationToken) -> None:
        """Run one request on the worker thread, emitting envelopes as it goes."""


class TranscriptionWorker(InferenceWorker):
    task = EngineTask.TRANSCRIPTION

    def handle(self, envelope: Envelope, token: CancellationToken) -> None:
        if not isinstance(envelope, InferenceRequest):
            logger.debug("transcription worker ignoring %s", envelope.type.value)
            return

        cfg = self.settings.transcription
        model = str(envelope.model_name or cfg.model)

        self.emit(Loading(status="loading"))
        try:
            engine = self.engine_cache.get_engine(self.task, model, self._forward_progress)
        except EngineLoadError as exc:
            logger.exception("transcription engine load failed (model=%s)", model)
            self.emit(
                LoadFailed(
                    model_name=model,
                    error_code=ErrorCode.ENGINE_LOAD_FAILED.value,
                    message=exc.message,
                )
            )
            return
        self.emit(Loading(status="success"))

        tracker = GenerationTracker(
            engine,
            self.emit,
            stride_length_s=cfg.stride_length_s,
            partial_every=cfg.partial_every,
            cancel_token=token,
        )
        options = TranscriptionOptions(
            chunk_length_s=cfg.chunk_length_s,
            stride_length_s=cfg.stride_length_s,
            top_k=cfg.top_k,
            do_sample=cfg.do_sample,
            return_timestamps=True,
        )
        logger.info(
            "transcription started (model=%s, duration_s=%.1f)",
            model,
            envelope.audio.duration_s,
        )
        try:
            self.engine_cache.backend.run_transcription(
                engine,
                envelope.audio,
                options,
                tracker.on_beam_update,
                tracker.on_chunk_boundary,
            )
        except InferenceCancelled:
            logger.info("transcription cancelled (chunks=%d)", len(tracker.chunks))
            tracker.send_cancelled()
            return
        except Exception as exc:
            logger.exception("transcription failed (model=%s)", model)
            tracker.send_failure(exc)
            return

        logger.info(
            "transcription finished (chunks=%d, segments=%d)",
            len(tracker.chunks),
            len(tracker.processed_segments),
        )
        tracker.send_final_result()


class TranslationWorker(InferenceWorker):
    task = EngineTask.TRANSLATION

    def handle(self, envelope: Envelope, token: CancellationToken) -> None:
        if not isinstance(envelope, TranslationRequest):
            logger.debug("translation worker ignoring %s", envelope.type.value)
            return

        cfg = self.settings.translation
        try:
            engine = self.engine_cache.get_engine(self.task, cfg.model, self._forward_progress)
        except EngineLoadError as exc:
            logger.exception("translation engine load failed (model=%s)", cfg.model)
            self.emit(
                LoadFailed(
                    model_name=cfg.model,
                    error_code=ErrorCode.ENGINE_LOAD_FAILED.value,
                    message=exc.message,
                )
            )
            return

        decoder = TranslationStreamDecoder(
            engine,
            self.emit,
            separator=cfg.separator,
            cancel_token=token,
        )
        logger.info(
            "translation started (src=%s, tgt=%s, texts=%d)",
            envelope.src_lang,
            envelope.tgt_lang,
            len(envelope.text),
        )
        try:
            outputs = self.engine_cache.backend.run_translation(
                engine,
                envelope.text,
                envelope.src_lang,
                envelope.tgt_lang,
                decoder.on_token_update,
            )
        except InferenceCancelled:
            logger.info("translation cancelled")
            decoder.send_cancelled()
            return
        except Exception as exc:
            logger.exception("translation failed (tgt=%s)", envelope.tgt_lang)
            decoder.send_failure(exc)
            return

        decoder.complete(outputs)
