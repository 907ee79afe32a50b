"""
Logging for sidekick: every module logs to a dated file under LOG_DIR.

The TUI owns the terminal, so console output is only added for the plain
CLI commands, and only with VERBOSE=true.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from sidekick.config import Config

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set once the TUI is about to start; later loggers get no console handler
_console_disabled = False


def _is_console(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and handler.stream in (sys.stdout, sys.stderr)


def suppress_console_logs() -> None:
    """Strip stdout/stderr handlers from every sidekick logger created so far."""
    global _console_disabled
    _console_disabled = True
    for name in list(logging.Logger.manager.loggerDict):
        logger = logging.getLogger(name)
        for handler in [h for h in logger.handlers if _is_console(h)]:
            logger.removeHandler(handler)


def setup_logging(name: str = "sidekick", log_file: str | None = None) -> logging.Logger:
    """
    Return the named logger, attaching handlers the first time.

    Args:
        name: Logger name, ``sidekick.<area>`` by convention.
        log_file: File under LOG_DIR; defaults to ``sidekick_<YYYYMMDD>.log``.
    """
    Config.ensure_dirs()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, Config.LOG_LEVEL.upper(), logging.DEBUG))
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    filename = log_file or f"sidekick_{datetime.now():%Y%m%d}.log"

    file_handler = logging.FileHandler(Config.LOG_DIR / filename, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if Config.VERBOSE and not _console_disabled:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.INFO)
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger
