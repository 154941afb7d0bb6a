"""Logging utilities for assetflow commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Tuple

_LOGGER_NAME = "assetflow"

# Libraries that log on dev-mode threads: name -> (quiet level, verbose level).
THIRD_PARTY_LEVELS: Dict[str, Tuple[int, int]] = {
    "watchdog": (logging.WARNING, logging.INFO),
    "uvicorn": (logging.WARNING, logging.INFO),
    "uvicorn.error": (logging.WARNING, logging.INFO),
    "uvicorn.access": (logging.WARNING, logging.INFO),
}


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the assetflow hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def _build_handlers(level: int, log_file: Path | None) -> List[logging.Handler]:
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[assetflow] %(levelname)s %(message)s"))
    handlers: List[logging.Handler] = [stream_handler]

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
    return handlers


def _install(logger: logging.Logger, level: int, handlers: List[logging.Handler]) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route assetflow, watchdog and uvicorn output through one set of handlers.

    assetflow logs at INFO (DEBUG with `verbose`). The watcher and dev-server
    libraries are held at WARNING unless `verbose`, where they drop to INFO so
    request lines and observer notices show up without their debug chatter.
    The file sink, when given, records everything that passes those levels.
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers = _build_handlers(level, log_file)

    logger = logging.getLogger(_LOGGER_NAME)
    _install(logger, level, handlers)

    for name, (quiet, loud) in THIRD_PARTY_LEVELS.items():
        # Child uvicorn loggers would otherwise emit twice through the parent.
        child_handlers = [] if name.startswith("uvicorn.") else handlers
        third_party = logging.getLogger(name)
        _install(third_party, loud if verbose else quiet, child_handlers)
        if not child_handlers:
            third_party.propagate = True

    return logger


__all__ = ["THIRD_PARTY_LEVELS", "configure_logging", "get_logger"]
