from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from freescribe.config import LoggingSettings, Settings
from freescribe.utils.logging_setup import setup_logging


def test_setup_logging_configures_package_logger_once(tmp_path) -> None:
    logger = logging.getLogger("freescribe")
    saved = (logger.handlers, logger.level, logger.propagate)
    if hasattr(logger, "_freescribe_configured"):
        delattr(logger, "_freescribe_configured")
    try:
        settings = Settings(
            log_dir=str(tmp_path),
            logging=LoggingSettings(level="debug", file="freescribe.log", console=False),
        )

        configured = setup_logging(settings)
        assert setup_logging(settings) is configured is logger

        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RotatingFileHandler)
        assert (tmp_path / "freescribe.log").exists()
        assert logging.getLogger("huggingface_hub").level == logging.WARNING
    finally:
        for h in logger.handlers:
            h.close()
        logger.handlers = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]
        if hasattr(logger, "_freescribe_configured"):
            delattr(logger, "_freescribe_configured")
