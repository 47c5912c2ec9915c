"""Ghost-text suggestion state and overlay rendering."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from editor_adapter import EditorAdapter

logger = logging.getLogger(__name__)


class SuggestionState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    SHOWN = "shown"
    STALE = "stale"


@dataclass
class Suggestion:
    """A proposed completion of ``prefix``."""

    prefix: str
    text: str
    displayed_for_buffer: str = ""

    @property
    def suffix(self) -> str:
        return self.text[len(self.prefix):]


@dataclass(frozen=True)
class Overlay:
    """Trailing ghost text spanning ``[start, end)`` past the editable buffer."""

    text: str
    start: int
    end: int


def is_extension(candidate: str, prefix: str) -> bool:
    """True when ``candidate`` starts with ``prefix`` and is strictly longer."""
    return len(candidate) > len(prefix) and candidate.startswith(prefix)


def render_overlay(suggestion: Suggestion, buffer: str) -> Optional[Overlay]:
    """Compute the overlay for ``suggestion`` against the live ``buffer``.

    Returns ``None`` when there is nothing to draw: the suggestion does not
    extend the buffer, or removing the buffer leaves an empty suffix.
    """
    if not suggestion.text.startswith(buffer):
        return None
    suffix = suggestion.text[len(buffer):]
    if not suffix:
        return None
    start = len(buffer)
    return Overlay(text=suffix, start=start, end=start + len(suffix))


class SuggestionStore:
    """Holds the single live suggestion for the line being edited."""

    def __init__(self) -> None:
        self.state = SuggestionState.IDLE
        self.suggestion: Optional[Suggestion] = None
        # Prefix of the most recent request; repeated triggers on the same
        # buffer do not call the predictor again.
        self.requested_prefix = ""

    @property
    def displayed_for_buffer(self) -> str:
        return self.suggestion.displayed_for_buffer if self.suggestion else ""

    def should_request(self, buffer: str, min_length: int) -> bool:
        return len(buffer) >= min_length and buffer != self.requested_prefix

    def begin_request(self, prefix: str) -> None:
        self.requested_prefix = prefix
        self.state = SuggestionState.PENDING

    def reconcile(self, candidates: Sequence[str], buffer: str) -> Optional[Suggestion]:
        """Pick the top candidate if it still extends the current ``buffer``.

        Anything after the first candidate is ignored. The buffer passed here
        is the one live now, not necessarily the one the request was made for.
        """
        if not candidates:
            return None
        top = candidates[0]
        if not is_extension(top, buffer):
            logger.debug("discarding %r: does not extend %r", top, buffer)
            return None
        return Suggestion(prefix=buffer, text=top)

    def show(self, editor: "EditorAdapter", suggestion: Suggestion) -> bool:
        """Render ``suggestion`` into the editor overlay; vacuous ones are cleared."""
        buffer = editor.text
        overlay = render_overlay(suggestion, buffer)
        if overlay is None:
            self.clear(editor)
            return False
        suggestion.displayed_for_buffer = buffer
        self.suggestion = suggestion
        editor.show_overlay(overlay)
        self.state = SuggestionState.SHOWN
        return True

    def clear(self, editor: "EditorAdapter") -> None:
        self.suggestion = None
        self.requested_prefix = ""
        self.state = SuggestionState.IDLE
        editor.clear_overlay()

    def settle_idle(self, editor: "EditorAdapter") -> None:
        """A lookup produced nothing; keep ``requested_prefix`` for de-duplication."""
        self.suggestion = None
        self.state = SuggestionState.IDLE
        editor.clear_overlay()

    def has_drifted(self, buffer: str) -> bool:
        return self.suggestion is not None and buffer != self.suggestion.displayed_for_buffer

    def mark_stale(self) -> None:
        self.state = SuggestionState.STALE
