"""Streaming inference orchestration.

Keep imports lazy so `freescribe.pipeline.<module>` can be imported on its own
without pulling in the orchestrator and both workers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from freescribe.pipeline.engine_cache import EngineCache, get_engine_cache
    from freescribe.pipeline.orchestrator import AppState, Orchestrator, RejectionReason

__all__ = ["AppState", "EngineCache", "Orchestrator", "RejectionReason", "get_engine_cache"]


def __getattr__(name: str) -> Any:
    if name in {"AppState", "Orchestrator", "RejectionReason"}:
        from freescribe.pipeline import orchestrator

        return getattr(orchestrator, name)
    if name in {"EngineCache", "get_engine_cache"}:
        from freescribe.pipeline import engine_cache

        return getattr(engine_cache, name)
    raise AttributeError(name)
