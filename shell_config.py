"""Runtime settings for ghost-shell, read from ``GHOSTSHELL_*`` environment variables."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "GHOSTSHELL_"

# Defaults; each one can be overridden with GHOSTSHELL_<NAME>
MAX_SUGGESTIONS = 5
PREDICTION_TIMEOUT_MS = 100
MIN_PREFIX_LENGTH = 2
IGNORE_PATTERNS = r"^(ls|cd|pwd|exit|clear|history)$"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _data_home(environ: Mapping[str, str]) -> Path:
    xdg = environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg)
    return Path(environ.get("HOME", "~")).expanduser() / ".local" / "share"


def default_socket_path(environ: Mapping[str, str]) -> Path:
    runtime_dir = environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return Path(runtime_dir) / "nicehist.sock"
    return Path(f"/tmp/nicehist-{os.getuid()}.sock")


@dataclass
class Settings:
    socket_path: Path
    db_path: Path
    history_path: Path
    cli_path: Optional[str] = None
    daemon_path: Optional[str] = None
    suggestions_enabled: bool = True
    max_suggestions: int = MAX_SUGGESTIONS
    prediction_timeout_ms: int = PREDICTION_TIMEOUT_MS
    min_prefix_length: int = MIN_PREFIX_LENGTH
    ignore_patterns: str = IGNORE_PATTERNS
    bind_ctrl_e: bool = True
    bind_right_arrow: bool = False
    debug: bool = False
    log_file: Optional[Path] = None
    _ignore_re: Optional[re.Pattern] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._ignore_re = re.compile(self.ignore_patterns) if self.ignore_patterns else None

    @property
    def prediction_timeout(self) -> float:
        """Prediction timeout in seconds."""
        return self.prediction_timeout_ms / 1000.0

    def is_ignored(self, command: str) -> bool:
        return bool(self._ignore_re and self._ignore_re.search(command))


def _get_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(ENV_PREFIX + name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.warning("Ignoring invalid boolean %s%s=%r", ENV_PREFIX, name, raw)
    return default


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid integer %s%s=%r", ENV_PREFIX, name, raw)
        return default


def _get_str(environ: Mapping[str, str], name: str) -> Optional[str]:
    raw = environ.get(ENV_PREFIX + name)
    return raw if raw else None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the environment.

    Raises ``ValueError`` when ``GHOSTSHELL_IGNORE_PATTERNS`` is not a valid
    regular expression.
    """
    if environ is None:
        environ = os.environ

    data_home = _data_home(environ)
    socket_path = _get_str(environ, "SOCKET_PATH")
    db_path = _get_str(environ, "DB_PATH")
    history_path = _get_str(environ, "HISTORY_PATH")
    log_file = _get_str(environ, "LOG_FILE")
    ignore = environ.get(ENV_PREFIX + "IGNORE_PATTERNS", IGNORE_PATTERNS)

    try:
        return Settings(
            socket_path=Path(socket_path) if socket_path else default_socket_path(environ),
            db_path=Path(db_path) if db_path else data_home / "nicehist" / "history.db",
            history_path=Path(history_path) if history_path else data_home / "ghost-shell" / "history",
            cli_path=_get_str(environ, "CLI_PATH"),
            daemon_path=_get_str(environ, "DAEMON_PATH"),
            suggestions_enabled=_get_bool(environ, "SUGGESTIONS_ENABLED", True),
            max_suggestions=_get_int(environ, "MAX_SUGGESTIONS", MAX_SUGGESTIONS),
            prediction_timeout_ms=_get_int(environ, "PREDICTION_TIMEOUT_MS", PREDICTION_TIMEOUT_MS),
            min_prefix_length=_get_int(environ, "MIN_PREFIX_LENGTH", MIN_PREFIX_LENGTH),
            ignore_patterns=ignore,
            bind_ctrl_e=_get_bool(environ, "BIND_CTRL_E", True),
            bind_right_arrow=_get_bool(environ, "BIND_RIGHT_ARROW", False),
            debug=_get_bool(environ, "DEBUG", False),
            log_file=Path(log_file) if log_file else None,
        )
    except re.error as exc:
        raise ValueError(f"invalid {ENV_PREFIX}IGNORE_PATTERNS {ignore!r}: {exc}") from exc
