"""Records finished commands with the external history store.

``preexec`` runs just before a command starts and ``precmd`` just before the
next prompt is drawn. The store call itself is fire-and-forget: nothing waits
for it and a lost entry is accepted.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from session_state import EditingSession
from shell_config import Settings
from suggestion_client import NicehistClient

logger = logging.getLogger(__name__)


def duration_ms(start: float, end: float) -> int:
    """Whole milliseconds between two epoch timestamps, never negative."""
    return max(0, int((end - start) * 1000))


class CommandLogger:
    def __init__(
        self,
        settings: Settings,
        client: NicehistClient,
        session: EditingSession,
        history: Callable[[], str],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.client = client
        self.session = session
        self.history = history
        self.clock = clock

    def preexec(self, command: str) -> None:
        if self.settings.is_ignored(command):
            self.session.reset_timer()
            logger.debug("preexec: ignoring %r", command)
            return
        self.session.command_start_time = self.clock()
        logger.debug("preexec: %s", command)

    def precmd(self, exit_status: int, cwd: str) -> bool:
        """Log the command that just finished; True when a store was dispatched."""
        if not self.session.timing:
            return False

        start = self.session.command_start_time
        elapsed = duration_ms(start, self.clock())

        # History holds the expanded line; the duration still belongs to what preexec saw.
        command = self.history().lstrip()
        if not command:
            self.session.reset_timer()
            return False

        logger.debug("precmd: exit=%s duration=%sms cmd=%s", exit_status, elapsed, command)
        worker = self._dispatch(command, cwd, exit_status, elapsed, int(start))

        self.session.remember(command)
        self.session.reset_timer()
        return worker is not None

    def _dispatch(self, command: str, cwd: str, exit_status: int, elapsed: int, start: int) -> Optional[object]:
        return self.client.store_async(
            command,
            cwd,
            exit_status=exit_status,
            duration_ms=elapsed,
            start_time=start,
            session_id=self.session.session_id,
            prev_cmd=self.session.last_command or None,
            prev2_cmd=self.session.previous_command or None,
        )
