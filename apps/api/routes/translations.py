"""Translation API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from freescribe.providers.engine.base import EngineTask

from ._deps import orchestrator, raise_if_rejected

router = APIRouter(tags=["translations"])


class CreateTranslationRequest(BaseModel):
    to_language: str | None = None
    source_language: str | None = None


@router.post("/translations")
async def create_translation(request: Request, payload: CreateTranslationRequest) -> dict[str, Any]:
    orch = orchestrator(request)
    raise_if_rejected(orch.translate(payload.to_language, source_language=payload.source_language))
    return orch.state.to_dict()


@router.post("/translations/cancel")
async def cancel_translation(request: Request) -> dict[str, bool]:
    return {"cancelled": orchestrator(request).cancel(EngineTask.TRANSLATION)}
