"""FreeScribe API"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from freescribe.config import Settings
from freescribe.pipeline import EngineCache, Orchestrator
from freescribe.providers import get_inference_backend
from freescribe.providers.engine.base import InferenceBackend
from freescribe.utils.logging_setup import setup_logging
from routes.health import router as health_router
from routes.transcriptions import router as transcriptions_router
from routes.translations import router as translations_router

logger = logging.getLogger("freescribe.api")


def create_app(
    settings: Settings | None = None,
    backend: InferenceBackend | None = None,
    *,
    engine_cache: EngineCache | None = None,
) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        inference = backend or get_inference_backend(settings.engine_config())
        orchestrator = Orchestrator(settings, inference, engine_cache=engine_cache)
        await orchestrator.start()
        app.state.settings = settings
        app.state.orchestrator = orchestrator
        logger.info(
            "API starting (engine=%s, asr_model=%s, mt_model=%s)",
            settings.engine.provider,
            settings.transcription.model,
            settings.translation.model,
        )
        try:
            yield
        finally:
            await orchestrator.close()

    app = FastAPI(
        title="FreeScribe API",
        description="Local speech transcription and translation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(transcriptions_router)
    app.include_router(translations_router)
    app.include_router(health_router)
    return app


app = create_app()
