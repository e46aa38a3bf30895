from __future__ import annotations

import threading

import pytest

from fakes import FakeBackend

from freescribe.exceptions import EngineLoadError
from freescribe.pipeline.engine_cache import EngineCache
from freescribe.providers.engine.base import EngineTask, LoadProgress


def test_engine_is_loaded_once_and_reused() -> None:
    backend = FakeBackend()
    cache = EngineCache(backend)

    first = cache.get_engine(EngineTask.TRANSCRIPTION, "tiny")
    second = cache.get_engine(EngineTask.TRANSCRIPTION, "tiny")

    assert first is second
    assert backend.load_calls == [(EngineTask.TRANSCRIPTION, "tiny")]
    assert cache.is_loaded(EngineTask.TRANSCRIPTION, "tiny")


def test_engines_are_keyed_by_task_and_model() -> None:
    backend = FakeBackend()
    cache = EngineCache(backend)

    asr = cache.get_engine(EngineTask.TRANSCRIPTION, "m")
    mt = cache.get_engine(EngineTask.TRANSLATION, "m")
    other = cache.get_engine(EngineTask.TRANSCRIPTION, "m2")

    assert len({id(asr), id(mt), id(other)}) == 3
    assert len(backend.load_calls) == 3


def test_concurrent_first_requests_share_a_single_load() -> None:
    backend = FakeBackend(load_delay=0.2)
    cache = EngineCache(backend)
    results: list[object] = []
    lock = threading.Lock()

    def _get() -> None:
        engine = cache.get_engine(EngineTask.TRANSCRIPTION, "tiny")
        with lock:
            results.append(engine)

    threads = [threading.Thread(target=_get) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5.0)

    assert len(results) == 5
    assert all(r is results[0] for r in results)
    assert backend.load_calls == [(EngineTask.TRANSCRIPTION, "tiny")]


def test_only_the_loading_caller_sees_progress() -> None:
    backend = FakeBackend()
    cache = EngineCache(backend)
    first: list[LoadProgress] = []
    second: list[LoadProgress] = []

    cache.get_engine(EngineTask.TRANSCRIPTION, "tiny", first.append)
    cache.get_engine(EngineTask.TRANSCRIPTION, "tiny", second.append)

    assert [p.status for p in first] == ["initiate", "progress", "done"]
    assert second == []


def test_failed_load_is_forgotten_and_can_be_retried() -> None:
    backend = FakeBackend(load_error=OSError("no network"))
    cache = EngineCache(backend)

    with pytest.raises(EngineLoadError) as exc_info:
        cache.get_engine(EngineTask.TRANSLATION, "nllb")
    assert exc_info.value.model == "nllb"
    assert "no network" in str(exc_info.value)
    assert not cache.is_loaded(EngineTask.TRANSLATION, "nllb")

    backend.load_error = None
    engine = cache.get_engine(EngineTask.TRANSLATION, "nllb")

    assert engine is not None
    assert len(backend.load_calls) == 2


def test_waiters_observe_the_load_failure() -> None:
    backend = FakeBackend(load_delay=0.2, load_error=RuntimeError("boom"))
    cache = EngineCache(backend)
    errors: list[BaseException] = []
    lock = threading.Lock()

    def _get() -> None:
        try:
            cache.get_engine(EngineTask.TRANSCRIPTION, "tiny")
        except EngineLoadError as exc:
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=_get) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5.0)

    assert len(errors) == 3
    assert len(backend.load_calls) == 1
