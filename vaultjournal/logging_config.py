# -*- coding: utf-8 -*-
"""Logging setup for vaultjournal.

Nothing here ever sees secrets: modules log vault ids, sizes and counts only.
"""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

VERBOSE_ENV = "VAULTJOURNAL_VERBOSE"
LOGGER_NAME = "vaultjournal"


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Set the package log level; ``VAULTJOURNAL_VERBOSE`` forces DEBUG."""
    if os.environ.get(VERBOSE_ENV):
        enable_debug_mode()
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.getLogger(LOGGER_NAME).setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def enable_debug_mode() -> None:
    """Enable debug-level logging to stderr."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
               for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))
        logger.addHandler(handler)


def configure_log_file(log_dir: Union[str, Path]) -> logging.Handler:
    """Write vaultjournal logs to ``{log_dir}/vaultjournal.log``.

    Rotating file handler (1MB max, 3 backups). The terminal UI owns stderr,
    so this is where log output goes while it runs. Returns the handler so
    the caller can remove it on shutdown.
    """
    log_path = Path(log_dir) / "vaultjournal.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(log_path), maxBytes=1_000_000, backupCount=3)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logging.getLogger(LOGGER_NAME).addHandler(handler)
    return handler
