"""Health check routes."""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from freescribe.providers.engine.base import EngineTask

from ._deps import orchestrator, settings

router = APIRouter(tags=["health"])


class EngineHealth(BaseModel):
    model: str
    loaded: bool


class HealthResponse(BaseModel):
    status: str  # "ok" | "stopped"
    engines: dict[str, EngineHealth]


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check endpoint."""
    orch = orchestrator(request)
    cfg = settings(request)
    models = {
        EngineTask.TRANSCRIPTION: cfg.transcription.model,
        EngineTask.TRANSLATION: cfg.translation.model,
    }
    return HealthResponse(
        status="ok" if orch.started else "stopped",
        engines={
            task.value: EngineHealth(model=model, loaded=orch.engine_cache.is_loaded(task, model))
            for task, model in models.items()
        },
    )
