"""Per-session bookkeeping shared by the command logger and the widgets."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class EditingSession:
    """State owned by one running shell; created at start, dropped at exit."""

    session_id: int = field(default_factory=os.getpid)
    last_command: str = ""
    previous_command: str = ""
    # 0.0 means "not tracked"
    command_start_time: float = 0.0

    def remember(self, command: str) -> None:
        self.previous_command = self.last_command
        self.last_command = command

    def reset_timer(self) -> None:
        self.command_start_time = 0.0

    @property
    def timing(self) -> bool:
        return self.command_start_time != 0


class ContextCache:
    """Single-slot memo of directory metadata, keyed by working directory."""

    def __init__(self) -> None:
        self.directory: Optional[str] = None
        self.values: Dict[str, str] = {}

    def get(self, cwd: str, fetch: Callable[[str], Dict[str, str]]) -> Dict[str, str]:
        if cwd == self.directory and self.values:
            return self.values
        values = fetch(cwd)
        self.values = dict(values)
        # An empty answer is not cached; the next read asks again.
        self.directory = cwd if values else None
        logger.debug("context for %s: %s", cwd, self.values)
        return self.values

    def invalidate(self) -> None:
        self.directory = None
        self.values = {}
