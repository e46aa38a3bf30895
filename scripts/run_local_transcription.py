from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from freescribe.config import Settings
from freescribe.pipeline import AppState, Orchestrator
from freescribe.providers import get_inference_backend
from freescribe.utils.audio import decode_audio
from freescribe.utils.logging_setup import setup_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Transcribe (and optionally translate) a local audio file.")
    parser.add_argument("--media", required=True, help="Path to local audio/video file")
    parser.add_argument("--model", default=None, help="ASR model id (defaults to TRANSCRIPTION_MODEL)")
    parser.add_argument("--target-language", default=None, help="Translate to this language code, e.g. fra_Latn")
    parser.add_argument("--source-language", default=None, help="Source language code (defaults to eng_Latn)")
    parser.add_argument("--max-duration-s", type=float, default=None, help="Only process first N seconds")
    parser.add_argument("--device", default=None, help="Inference device, e.g. cpu/cuda")
    parser.add_argument("--timeout-s", type=float, default=None, help="Give up after N seconds per task")
    parser.add_argument("--partials", action="store_true", help="Print partial results while generating")
    return parser.parse_args()


def _printer(show_partials: bool):
    last: dict[str, object] = {"partial": None, "segments": 0}

    async def _on_change(state: AppState) -> None:
        ts = state.transcription
        count = len(ts.output or [])
        if count != last["segments"]:
            last["segments"] = count
            print(f"[{ts.completed_until:>5}s] segments={count}")
        if show_partials and ts.partial is not None and ts.partial != last["partial"]:
            last["partial"] = ts.partial
            print(f"  ... {ts.partial.text}")

    return _on_change


async def _run() -> int:
    args = _parse_args()
    media_path = Path(args.media)
    if not media_path.exists():
        raise SystemExit(f"Media not found: {media_path}")

    settings = Settings()
    if args.max_duration_s is not None:
        settings.audio.max_duration_s = float(args.max_duration_s)
    if args.device is not None:
        settings.engine.device = str(args.device)
    setup_logging(settings)

    audio = await decode_audio(
        media_path,
        ffmpeg_bin=settings.audio.ffmpeg_bin,
        sampling_rate=int(settings.transcription.sampling_rate),
        max_duration_s=settings.audio.max_duration_s,
    )
    backend = get_inference_backend(settings.engine_config())

    async with Orchestrator(settings, backend, on_state_change=_printer(bool(args.partials))) as orch:
        orch.transcribe(audio, args.model)
        ts = await orch.wait_for_transcription(timeout=args.timeout_s)
        if ts.error:
            print(f"transcription failed: {ts.error_code} {ts.error}")
            return 1
        for seg in ts.output or []:
            print(f"{seg.start:>5}-{seg.end:<5} {seg.text}")

        if args.target_language:
            reason = orch.translate(args.target_language, source_language=args.source_language)
            if reason is not None:
                print(f"translation rejected: {reason.value}")
                return 1
            tr = await orch.wait_for_translation(timeout=args.timeout_s)
            if tr.error:
                print(f"translation failed: {tr.error_code} {tr.error}")
                return 1
            print(f"\n[{tr.to_language}] {tr.translation or ''}")

    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
