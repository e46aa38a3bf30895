"""Logging initialization helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from freescribe.config import LoggingSettings, Settings

# Third-party loggers that chatter during model download and generation.
_LIBRARY_LOGGERS = ("transformers", "huggingface_hub", "urllib3", "filelock")


def _level(name: str | None, default: int = logging.INFO) -> int:
    value = logging.getLevelName(str(name or "").upper())
    return value if isinstance(value, int) else default


def _build_handlers(settings: Settings, level: int) -> list[logging.Handler]:
    cfg: LoggingSettings = settings.logging
    formatter = logging.Formatter(fmt=str(cfg.format), datefmt=str(cfg.datefmt))
    handlers: list[logging.Handler] = []

    if cfg.console:
        handlers.append(logging.StreamHandler())

    if cfg.file:
        path = Path(str(cfg.file))
        if not path.is_absolute():
            path = Path(settings.log_dir) / path
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(cfg.max_bytes),
                backupCount=int(cfg.backup_count),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the `freescribe` logger tree once per process.

    Worker threads log through the same tree, so the package logger stops
    propagating to the root logger. Inference libraries are capped at
    `LOG_LIBRARY_LEVEL` instead of being reconfigured.
    """
    logger = logging.getLogger("freescribe")
    if getattr(logger, "_freescribe_configured", False):
        return logger

    level = _level(settings.logging.level)
    logger.setLevel(level)
    logger.handlers = _build_handlers(settings, level)
    logger.propagate = False

    library_level = _level(settings.logging.library_level, default=logging.WARNING)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    setattr(logger, "_freescribe_configured", True)
    return logger
