"""Audio ingestion (FFmpeg decode to 16 kHz mono float32)."""

from __future__ import annotations

import logging
from pathlib import Path

from freescribe.exceptions import InvalidAudioError
from freescribe.models.audio import SAMPLING_RATE, AudioSample
from freescribe.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)


def build_decode_command(
    source: str,
    *,
    ffmpeg_bin: str = "ffmpeg",
    sampling_rate: int = SAMPLING_RATE,
    max_duration_s: float | None = None,
) -> list[str]:
    cmd = [ffmpeg_bin, "-nostdin", "-hide_banner", "-loglevel", "error", "-i", source]
    if max_duration_s is not None:
        cmd += ["-t", str(float(max_duration_s))]
    cmd += ["-vn", "-ac", "1", "-ar", str(int(sampling_rate)), "-f", "f32le", "pipe:1"]
    return cmd


async def decode_audio(
    source: str | Path | bytes,
    *,
    ffmpeg_bin: str = "ffmpeg",
    sampling_rate: int = SAMPLING_RATE,
    max_duration_s: float | None = None,
) -> AudioSample:
    """Decode an audio file (path) or an in-memory upload (bytes) into PCM samples."""
    if isinstance(source, bytes):
        if not source:
            raise InvalidAudioError("empty audio upload")
        data: bytes | None = source
        target = "pipe:0"
    else:
        path = Path(source)
        if not path.is_file():
            raise InvalidAudioError(f"audio file not found: {path}")
        data = None
        target = str(path)

    cmd = build_decode_command(
        target,
        ffmpeg_bin=ffmpeg_bin,
        sampling_rate=sampling_rate,
        max_duration_s=max_duration_s,
    )
    try:
        result = await run_subprocess(cmd, input=data)
    except FileNotFoundError as exc:
        raise InvalidAudioError(f"ffmpeg not found: {ffmpeg_bin}") from exc

    if not result.ok:
        raise InvalidAudioError(
            f"ffmpeg decode failed (code={result.returncode}): {result.stderr_text()}"
        )

    audio = AudioSample.from_f32le(result.stdout, sampling_rate=sampling_rate)
    if len(audio) == 0:
        raise InvalidAudioError("decoded audio is empty")
    logger.info("audio decoded (duration_s=%.1f)", audio.duration_s)
    return audio


def decode_pcm16(
    data: bytes,
    *,
    sampling_rate: int = SAMPLING_RATE,
    max_duration_s: float | None = None,
) -> AudioSample:
    """Wrap raw little-endian 16-bit mono PCM (microphone capture) without ffmpeg."""
    if not data:
        raise InvalidAudioError("empty audio upload")
    if len(data) % 2:
        raise InvalidAudioError("PCM16 payload has an odd number of bytes")
    if max_duration_s is not None:
        data = data[: int(float(max_duration_s) * int(sampling_rate)) * 2]
    audio = AudioSample.from_pcm16(data, sampling_rate=sampling_rate)
    logger.info("pcm16 audio received (duration_s=%.1f)", audio.duration_s)
    return audio
