from __future__ import annotations

from fastapi import HTTPException, Request

from freescribe.config import Settings
from freescribe.pipeline import Orchestrator, RejectionReason


def orchestrator(request: Request) -> Orchestrator:
    orch = getattr(request.app.state, "orchestrator", None)
    if orch is None:
        raise HTTPException(status_code=500, detail="orchestrator not initialized")
    return orch


def settings(request: Request) -> Settings:
    cfg = getattr(request.app.state, "settings", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="settings not initialized")
    return cfg


def raise_if_rejected(reason: RejectionReason | None) -> None:
    if reason is not None:
        raise HTTPException(status_code=409, detail=reason.value)
