"""Streams decoded translation text as token updates arrive."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from freescribe.error_codes import ErrorCode
from freescribe.pipeline.cancellation import CancellationToken
from freescribe.protocol.messages import (
    Cancelled,
    Envelope,
    InferenceFailed,
    TranslationComplete,
    TranslationUpdate,
)
from freescribe.providers.engine.base import Beam, TranslationEngine

logger = logging.getLogger(__name__)

Emit = Callable[[Envelope], None]


class TranslationStreamDecoder:
    """Per-call translation state; lives for exactly one translation call.

    Source texts are translated one after another. Every update carries the
    finished translations plus the current partial one joined together, so the
    receiver always replaces its text instead of appending.
    """

    def __init__(
        self,
        engine: TranslationEngine,
        emit: Emit,
        *,
        separator: str = " ",
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.engine = engine
        self.separator = separator
        self._emit = emit
        self._cancel_token = cancel_token
        self._finished: list[str] = []
        self._current_index = 0
        self._current = ""
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def output(self) -> str:
        parts = [p for p in [*self._finished, self._current] if p]
        return self.separator.join(parts)

    def on_token_update(self, index: int, beams: Sequence[Beam]) -> None:
        if self._cancel_token is not None:
            self._cancel_token.raise_if_cancelled()
        if not beams:
            return

        index = int(index)
        if index < self._current_index:
            logger.debug("ignoring stale token update (index=%d, current=%d)", index, self._current_index)
            return
        while self._current_index < index:
            self._finished.append(self._current)
            self._current = ""
            self._current_index += 1

        self._current = self.engine.decode(beams[0].output_token_ids, skip_special_tokens=True).strip()
        self._send(TranslationUpdate(output=self.output))

    def complete(self, outputs: Sequence[str]) -> None:
        final = self.separator.join(s for s in (str(o).strip() for o in outputs) if s)
        self._finish(TranslationComplete(output=final))

    def send_cancelled(self) -> None:
        self._finish(Cancelled())

    def send_failure(self, exc: BaseException) -> None:
        code = getattr(exc, "error_code", None) or ErrorCode.TRANSLATION_FAILED
        self._finish(InferenceFailed(error_code=str(getattr(code, "value", code)), message=str(exc)))

    def _finish(self, envelope: Envelope) -> None:
        if self._done:
            logger.debug("decoder already finished, dropping %s", envelope.type.value)
            return
        self._send(envelope)
        self._done = True

    def _send(self, envelope: Envelope) -> None:
        if self._done:
            logger.debug("decoder already finished, dropping %s", envelope.type.value)
            return
        self._emit(envelope)
