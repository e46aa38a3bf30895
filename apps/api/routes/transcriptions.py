"""Transcription API routes."""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse

from freescribe.exceptions import InvalidAudioError
from freescribe.providers.engine.base import EngineTask
from freescribe.utils.audio import decode_audio, decode_pcm16

from ._deps import orchestrator, raise_if_rejected, settings

router = APIRouter(tags=["transcriptions"])
logger = logging.getLogger(__name__)

# Raw 16-bit mono PCM bodies skip ffmpeg.
_PCM16_CONTENT_TYPES = {"audio/l16", "audio/pcm"}


def _pcm16_rate(content_type: str | None, default: int) -> int | None:
    """Sampling rate of a raw PCM16 upload, or None for container formats."""
    base, *params = [p.strip() for p in str(content_type or "").split(";")]
    if base.lower() not in _PCM16_CONTENT_TYPES:
        return None
    for param in params:
        key, _, value = param.partition("=")
        if key.strip().lower() == "rate" and value.strip().isdigit():
            return int(value.strip())
    return default


async def _read_upload(upload: UploadFile, *, max_bytes: int, chunk_size: int = 1024 * 1024) -> bytes:
    buf = bytearray()
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(status_code=413, detail="file too large")
    return bytes(buf)


@router.post("/transcriptions")
async def create_transcription(
    request: Request,
    file: UploadFile = File(...),
    model_name: str | None = Form(default=None),
) -> dict[str, Any]:
    orch = orchestrator(request)
    cfg = settings(request)
    data = await _read_upload(file, max_bytes=int(cfg.audio.upload_max_bytes))
    logger.info("upload received filename=%s size_bytes=%d", file.filename, len(data))

    sampling_rate = int(cfg.transcription.sampling_rate)
    pcm_rate = _pcm16_rate(file.content_type, sampling_rate)
    try:
        if pcm_rate is None:
            audio = await decode_audio(
                data,
                ffmpeg_bin=cfg.audio.ffmpeg_bin,
                sampling_rate=sampling_rate,
                max_duration_s=cfg.audio.max_duration_s,
            )
        elif pcm_rate != sampling_rate:
            raise InvalidAudioError(f"PCM16 uploads must be {sampling_rate} Hz (got {pcm_rate})")
        else:
            audio = decode_pcm16(data, sampling_rate=sampling_rate, max_duration_s=cfg.audio.max_duration_s)
    except InvalidAudioError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    raise_if_rejected(orch.transcribe(audio, model_name))
    return orch.state.to_dict()


@router.get("/state")
async def get_state(request: Request) -> dict[str, Any]:
    return orchestrator(request).state.to_dict()


@router.post("/transcriptions/cancel")
async def cancel_transcription(request: Request) -> dict[str, bool]:
    return {"cancelled": orchestrator(request).cancel(EngineTask.TRANSCRIPTION)}


@router.delete("/transcriptions")
async def reset_transcription(request: Request) -> dict[str, Any]:
    orch = orchestrator(request)
    orch.reset_audio()
    return orch.state.to_dict()


@router.get("/export", response_class=PlainTextResponse)
async def export_text(
    request: Request,
    tab: Literal["transcription", "translation"] = Query(default="transcription"),
) -> PlainTextResponse:
    state = orchestrator(request).state
    if tab == "transcription":
        text = state.transcript_text()
    else:
        text = str(state.translation.translation or "")
    if not text:
        raise HTTPException(status_code=404, detail=f"no {tab} to export")
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{tab}.txt"'},
    )
