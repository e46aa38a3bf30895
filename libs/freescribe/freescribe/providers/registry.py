"""Provider factory and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from freescribe.exceptions import ConfigurationError
from freescribe.providers.engine.base import InferenceBackend


def get_inference_backend(config: Mapping[str, Any]) -> InferenceBackend:
    """Get inference backend based on configuration."""
    provider_type = str(config.get("provider", "transformers")).strip().lower()

    match provider_type:
        case "transformers" | "huggingface":
            from freescribe.providers.engine.transformers_backend import TransformersBackend

            return TransformersBackend(
                device=config.get("device") or None,
                cache_dir=config.get("cache_dir") or None,
                local_files_only=bool(config.get("local_files_only", False)),
            )
        case _:
            raise ConfigurationError(f"Unknown inference backend: {provider_type}")
