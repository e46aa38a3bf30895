"""Provider abstractions for external services."""

from freescribe.providers.registry import get_inference_backend

__all__ = ["get_inference_backend"]
