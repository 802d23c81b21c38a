# rms_desktop/core/logs.py
"""
Logging setup: a DEBUG file log under the launcher's logs/ directory
plus a console handler at the requested level.
"""

from __future__ import annotations

import logging

from rms_desktop.core import config

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def setup_logging(level: str = "INFO", log_to_file: bool = True) -> logging.Logger:
    logger = logging.getLogger("rms_desktop")
    logger.setLevel(logging.DEBUG)

    # called again from a second entry point or from tests
    if getattr(logger, "_rms_configured", False):
        return logger

    formatter = logging.Formatter(_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(_LEVELS.get(level.upper(), logging.INFO))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        config.ensure_dirs()
        file_handler = logging.FileHandler(config.log_path(), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger._rms_configured = True
    return logger
