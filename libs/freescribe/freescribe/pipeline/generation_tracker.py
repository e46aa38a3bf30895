"""Turns beam and chunk callbacks into transcript envelopes.

The engine fires a beam callback on every generation step and a chunk callback
whenever a window of audio is finished. Beam callbacks are decimated into
occasional partial results; every chunk callback re-decodes the whole chunk
history, so each `RESULT` is a complete snapshot rather than a delta.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from typing import Any

from freescribe.error_codes import ErrorCode
from freescribe.models.segment import PartialResult, ProcessedSegment
from freescribe.pipeline.cancellation import CancellationToken
from freescribe.protocol.messages import (
    Cancelled,
    Envelope,
    InferenceDone,
    InferenceFailed,
    Result,
    ResultPartial,
)
from freescribe.providers.engine.base import Beam, TimedText, TranscriptionEngine

logger = logging.getLogger(__name__)

Emit = Callable[[Envelope], None]

# Share of the stride used as a segment's length when the engine gives no end.
_FALLBACK_END_RATIO = 0.9


def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


class GenerationTracker:
    """Per-call transcription state; lives for exactly one inference call."""

    def __init__(
        self,
        engine: TranscriptionEngine,
        emit: Emit,
        *,
        stride_length_s: float,
        partial_every: int = 10,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.engine = engine
        self.stride_length_s = float(stride_length_s)
        self.partial_every = max(1, int(partial_every))
        self.call_count = 0
        self.chunks: list[Any] = []
        self.processed_segments: list[ProcessedSegment] = []
        self._emit = emit
        self._cancel_token = cancel_token
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def last_segment_start(self) -> int:
        if not self.processed_segments:
            return 0
        return self.processed_segments[-1].start

    @property
    def completed_until(self) -> int:
        """Seconds of audio covered by the transcript so far."""
        if not self.processed_segments:
            return 0
        return self.processed_segments[-1].end

    def on_beam_update(self, beams: Sequence[Beam]) -> None:
        self.call_count += 1
        if self.call_count % self.partial_every != 0:
            return
        if not beams:
            return

        best = beams[0]
        text = self.engine.decode(best.output_token_ids, skip_special_tokens=True)
        self._send(ResultPartial(result=PartialResult(text=text, start=self.last_segment_start, end=None)))

    def on_chunk_boundary(self, chunk: Any) -> None:
        if self._cancel_token is not None:
            self._cancel_token.raise_if_cancelled()

        self.chunks.append(chunk)
        self.processed_segments = self.process_chunks()
        self._send(
            Result(
                results=tuple(self.processed_segments),
                is_done=False,
                completed_until=self.completed_until,
            )
        )

    def process_chunks(self) -> list[ProcessedSegment]:
        """Decode the full chunk history into segments (no side effects)."""
        spans = self.engine.decode_asr(list(self.chunks))
        return [self.process_segment(span, index) for index, span in enumerate(spans)]

    def process_segment(self, span: TimedText, index: int) -> ProcessedSegment:
        start = round_half_up(span.start)
        if span.end is None:
            end = round_half_up(span.start + _FALLBACK_END_RATIO * self.stride_length_s)
        else:
            end = max(start, round_half_up(span.end))
        return ProcessedSegment(index=index, text=str(span.text).strip(), start=start, end=end)

    def send_final_result(self) -> None:
        self._finish(InferenceDone())

    def send_cancelled(self) -> None:
        self._finish(Cancelled())

    def send_failure(self, exc: BaseException) -> None:
        code = getattr(exc, "error_code", None) or ErrorCode.INFERENCE_FAILED
        self._finish(InferenceFailed(error_code=str(getattr(code, "value", code)), message=str(exc)))

    def _finish(self, envelope: Envelope) -> None:
        if self._done:
            logger.debug("tracker already finished, dropping %s", envelope.type.value)
            return
        self._send(envelope)
        self._done = True

    def _send(self, envelope: Envelope) -> None:
        if self._done:
            logger.debug("tracker already finished, dropping %s", envelope.type.value)
            return
        self._emit(envelope)
