"""Utility helpers."""

from freescribe.utils.audio import decode_audio, decode_pcm16
from freescribe.utils.logging_setup import setup_logging

__all__ = ["decode_audio", "decode_pcm16", "setup_logging"]
