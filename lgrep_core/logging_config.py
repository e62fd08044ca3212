from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from .paths import LOG_DIR

PACKAGE_LOGGER = "lgrep_core"

# Level for the log file; stderr only shows warnings unless debugging.
LOG_LEVEL_ENV = "LGREP_LOG_LEVEL"

_FILE_HANDLER = "lgrep-file"
_STDERR_HANDLER = "lgrep-stderr"


def _file_level() -> int:
    level = logging.getLevelName(os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Return the logger the CLI configures. Modules in lgrep_core log through
    logging.getLogger(__name__) and reach these handlers by propagation.

    Records go to $LGREP_HOME/logs/<name>.log (rotated) at $LGREP_LOG_LEVEL,
    and to stderr from WARNING up so search output on stdout stays clean.
    """
    logger = logging.getLogger(name)

    # Avoid attaching handlers twice
    if logger.handlers:
        return logger

    file_level = _file_level()
    logger.setLevel(min(file_level, logging.WARNING))

    LOG_DIR.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        LOG_DIR / f"{name}.log",
        maxBytes=5 * 1024 * 1024,  # 5 MB per file
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.set_name(_FILE_HANDLER)
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s")
    )

    stream_handler = logging.StreamHandler()
    stream_handler.set_name(_STDERR_HANDLER)
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(logging.Formatter("lgrep: %(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)

    return logger


def set_debug(enabled: bool = True) -> None:
    """Open the package logger and its handlers up to DEBUG, or restore them."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    file_level = _file_level()
    logger.setLevel(logging.DEBUG if enabled else min(file_level, logging.WARNING))

    for handler in logger.handlers:
        if handler.get_name() == _STDERR_HANDLER:
            handler.setLevel(logging.DEBUG if enabled else logging.WARNING)
        elif handler.get_name() == _FILE_HANDLER:
            handler.setLevel(logging.DEBUG if enabled else file_level)


__all__ = ["get_logger", "set_debug", "PACKAGE_LOGGER", "LOG_LEVEL_ENV"]
