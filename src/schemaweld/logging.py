"""Logger hierarchy for schemaweld and the console/file sinks the CLI attaches to it."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "schemaweld"
CONSOLE_FORMAT = "[schemaweld] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Child logger for one pipeline stage, e.g. ``get_logger("cache")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def _attach(logger: logging.Logger, handler: logging.Handler, fmt: str) -> None:
    handler.setLevel(logger.level)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Point schemaweld logs at stderr, plus ``log_file`` when given.

    Calling this again replaces the sinks from the previous call.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()

    _attach(logger, logging.StreamHandler(sys.stderr), CONSOLE_FORMAT)
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(log_file, encoding="utf-8"), FILE_FORMAT)
    return logger
