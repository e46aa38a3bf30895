from __future__ import annotations

import pytest

from freescribe.exceptions import ConfigurationError
from freescribe.providers import get_inference_backend
from freescribe.providers.engine.transformers_backend import TransformersBackend


def test_transformers_backend_is_built_lazily() -> None:
    backend = get_inference_backend({"provider": "transformers", "device": "cpu", "cache_dir": ""})

    assert isinstance(backend, TransformersBackend)
    assert backend.device == "cpu"
    assert backend.cache_dir is None
    assert backend.local_files_only is False


def test_huggingface_alias() -> None:
    assert isinstance(get_inference_backend({"provider": "HuggingFace"}), TransformersBackend)


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        get_inference_backend({"provider": "onnx-web"})
