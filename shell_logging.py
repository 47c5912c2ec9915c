"""Logging setup for ghost-shell."""

from __future__ import annotations

import logging

from shell_config import Settings

LOGGER_NAMES = (
    "command_logger",
    "editor_adapter",
    "interactive_shell",
    "session_state",
    "shell_config",
    "suggestion_client",
    "suggestion_store",
    "widgets",
)

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(settings: Settings) -> None:
    """Attach handlers to the ghost-shell module loggers (idempotent)."""
    level = logging.DEBUG if settings.debug else logging.WARNING
    formatter = logging.Formatter(fmt=_FORMAT)

    handlers = []
    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    ch.setLevel(level)
    handlers.append(ch)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(settings.log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        fh.setLevel(logging.DEBUG)
        handlers.append(fh)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        if logger.handlers:
            continue
        logger.setLevel(logging.DEBUG if settings.debug or settings.log_file else logging.WARNING)
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False
