"""Process-wide cache of loaded inference engines.

Engines are keyed by `(task, model)`, created on first use and kept for the
life of the process; there is no teardown. The first caller for a key loads
the engine (and is the only one to see progress events); concurrent callers
for the same key wait on that load instead of starting their own.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any

from freescribe.exceptions import EngineLoadError
from freescribe.providers.engine.base import EngineTask, InferenceBackend, ProgressCallback

logger = logging.getLogger(__name__)

EngineKey = tuple[EngineTask, str]


class EngineCache:
    def __init__(self, backend: InferenceBackend) -> None:
        self.backend = backend
        self._lock = threading.Lock()
        self._engines: dict[EngineKey, Future[Any]] = {}

    def is_loaded(self, task: EngineTask, model: str) -> bool:
        with self._lock:
            fut = self._engines.get((task, str(model)))
        return fut is not None and fut.done() and fut.exception() is None

    def get_engine(
        self,
        task: EngineTask,
        model: str,
        progress_callback: ProgressCallback | None = None,
    ) -> Any:
        """Return the engine for `(task, model)`, loading it at most once.

        Raises:
            EngineLoadError: the load failed. The key is forgotten so a later
                request can try again; nothing here retries on its own.
        """
        key: EngineKey = (task, str(model))
        with self._lock:
            fut = self._engines.get(key)
            owner = fut is None
            if fut is None:
                fut = Future()
                self._engines[key] = fut

        if not owner:
            return fut.result()

        started = time.perf_counter()
        logger.info("loading engine (task=%s, model=%s)", task.value, model)
        try:
            engine = self.backend.load_engine(task, str(model), progress_callback)
        except Exception as exc:
            err = EngineLoadError(task.value, str(model), str(exc) or type(exc).__name__)
            with self._lock:
                self._engines.pop(key, None)
            fut.set_exception(err)
            raise err from exc

        fut.set_result(engine)
        logger.info(
            "engine loaded (task=%s, model=%s, elapsed_s=%.2f)",
            task.value,
            model,
            time.perf_counter() - started,
        )
        return engine


_CACHE: EngineCache | None = None
_CACHE_LOCK = threading.Lock()


def get_engine_cache(backend: InferenceBackend) -> EngineCache:
    """Get or create the process-wide engine cache.

    The backend given on first use wins; later calls share that cache.
    """
    global _CACHE
    with _CACHE_LOCK:
        if _CACHE is None:
            _CACHE = EngineCache(backend)
        return _CACHE
