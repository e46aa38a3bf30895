"""Hugging Face transformers inference backend."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from freescribe.error_codes import ErrorCode
from freescribe.exceptions import InferenceCancelled, InferenceError
from freescribe.models.audio import AudioSample
from freescribe.providers.engine.base import (
    Beam,
    BeamCallback,
    ChunkCallback,
    EngineTask,
    InferenceBackend,
    LoadProgress,
    ProgressCallback,
    TimedText,
    TokenUpdateCallback,
    TranscriptionOptions,
)

logger = logging.getLogger(__name__)

# Weight formats the PyTorch pipelines never read.
_IGNORE_PATTERNS = ["*.onnx", "onnx/*", "*.msgpack", "*.h5", "*.ot", "*.tflite"]


def _import_transformers() -> Any:
    try:
        import transformers
    except Exception as exc:  # pragma: no cover
        raise RuntimeError(
            "The transformers backend requires torch and transformers. "
            "Install them with: pip install 'freescribe[engine]'"
        ) from exc
    return transformers


class _BeamStreamer:
    """Generation streamer (put/end interface) reporting the best beam so far."""

    def __init__(self, on_beams: Callable[[Sequence[Beam]], None]) -> None:
        self._on_beams = on_beams
        self._token_ids: list[int] = []
        self._prompt_seen = False

    def reset(self) -> None:
        self._token_ids = []
        self._prompt_seen = False

    def put(self, value: Any) -> None:
        ids = [int(x) for x in value.reshape(-1).tolist()]
        self._token_ids.extend(ids)
        if not self._prompt_seen:
            # generate() pushes the decoder prompt before the first new token.
            self._prompt_seen = True
            return
        self._on_beams([Beam(output_token_ids=tuple(self._token_ids))])

    def end(self) -> None:
        return None


class TransformersTranscriptionEngine:
    def __init__(self, pipe: Any) -> None:
        self.pipeline = pipe

    def decode(self, token_ids: Sequence[int], *, skip_special_tokens: bool = True) -> str:
        return str(
            self.pipeline.tokenizer.decode(list(token_ids), skip_special_tokens=skip_special_tokens)
        )

    def decode_asr(self, chunks: Sequence[Any]) -> list[TimedText]:
        # postprocess pops keys off each chunk output; hand it shallow copies so
        # the accumulated history can be decoded again on the next chunk.
        outputs = self.pipeline.postprocess([dict(c) for c in chunks], return_timestamps=True)
        spans: list[TimedText] = []
        for item in list(outputs.get("chunks") or []):
            start, end = item["timestamp"]
            spans.append(
                TimedText(
                    text=str(item["text"]),
                    start=float(start or 0.0),
                    end=float(end) if end is not None else None,
                )
            )
        return spans


class TransformersTranslationEngine:
    def __init__(self, pipe: Any) -> None:
        self.pipeline = pipe

    def decode(self, token_ids: Sequence[int], *, skip_special_tokens: bool = True) -> str:
        return str(
            self.pipeline.tokenizer.decode(list(token_ids), skip_special_tokens=skip_special_tokens)
        )


class TransformersBackend(InferenceBackend):
    """Runs `transformers.pipeline` models in-process."""

    def __init__(
        self,
        *,
        device: str | None = None,
        cache_dir: str | None = None,
        local_files_only: bool = False,
    ) -> None:
        self.device = device
        self.cache_dir = cache_dir
        self.local_files_only = bool(local_files_only)

    def load_engine(
        self,
        task: EngineTask,
        model: str,
        on_progress: ProgressCallback | None = None,
    ) -> Any:
        transformers = _import_transformers()
        model_path = self._fetch(model, on_progress)
        logger.info("building pipeline (task=%s, model=%s, device=%s)", task.value, model, self.device)
        pipe = transformers.pipeline(task.value, model=model_path, device=self.device)
        if task == EngineTask.TRANSCRIPTION:
            return TransformersTranscriptionEngine(pipe)
        return TransformersTranslationEngine(pipe)

    def _fetch(self, model: str, on_progress: ProgressCallback | None) -> str:
        if Path(model).exists():
            return model

        from huggingface_hub import snapshot_download
        from tqdm.auto import tqdm

        def _emit(event: LoadProgress) -> None:
            if on_progress is not None:
                on_progress(event)

        class _ProgressBar(tqdm):
            def update(self, n: float | None = 1) -> bool | None:
                out = super().update(n)
                total = int(self.total) if self.total else None
                loaded = int(self.n)
                _emit(
                    LoadProgress(
                        status="progress",
                        file=model,
                        progress=(100.0 * loaded / total) if total else None,
                        loaded=loaded,
                        total=total,
                    )
                )
                return out

        _emit(LoadProgress(status="initiate", file=model))
        path = snapshot_download(
            repo_id=model,
            cache_dir=self.cache_dir,
            local_files_only=self.local_files_only,
            ignore_patterns=_IGNORE_PATTERNS,
            tqdm_class=_ProgressBar,
        )
        _emit(LoadProgress(status="done", file=model))
        return str(path)

    def run_transcription(
        self,
        engine: TransformersTranscriptionEngine,
        audio: AudioSample,
        options: TranscriptionOptions,
        on_beam: BeamCallback,
        on_chunk: ChunkCallback,
    ) -> None:
        pipe = engine.pipeline
        streamer = _BeamStreamer(on_beam)
        generate_kwargs: dict[str, Any] = {"do_sample": bool(options.do_sample), "streamer": streamer}
        if options.top_k:
            generate_kwargs["top_k"] = int(options.top_k)

        preprocess_params, forward_params, _ = pipe._sanitize_parameters(
            chunk_length_s=float(options.chunk_length_s),
            stride_length_s=float(options.stride_length_s),
            return_timestamps=bool(options.return_timestamps),
            generate_kwargs=generate_kwargs,
        )
        inputs = {"raw": audio.samples.copy(), "sampling_rate": audio.sampling_rate}
        try:
            for model_inputs in pipe.preprocess(inputs, **preprocess_params):
                streamer.reset()
                on_chunk(pipe.forward(model_inputs, **forward_params))
        except InferenceCancelled:
            raise
        except Exception as exc:
            raise InferenceError(
                EngineTask.TRANSCRIPTION.value,
                str(exc) or type(exc).__name__,
                error_code=ErrorCode.INFERENCE_FAILED,
            ) from exc

    def run_translation(
        self,
        engine: TransformersTranslationEngine,
        texts: Sequence[str],
        src_lang: str,
        tgt_lang: str,
        on_token_update: TokenUpdateCallback,
    ) -> list[str]:
        outputs: list[str] = []
        for index, text in enumerate(texts):
            if not str(text or "").strip():
                outputs.append("")
                continue
            streamer = _BeamStreamer(lambda beams, i=index: on_token_update(i, beams))
            try:
                result = engine.pipeline(
                    str(text),
                    src_lang=src_lang,
                    tgt_lang=tgt_lang,
                    streamer=streamer,
                )
            except InferenceCancelled:
                raise
            except Exception as exc:
                raise InferenceError(
                    EngineTask.TRANSLATION.value,
                    str(exc) or type(exc).__name__,
                    error_code=ErrorCode.TRANSLATION_FAILED,
                ) from exc
            outputs.append(str(result[0]["translation_text"]))
        return outputs
