"""Widget dispatcher: the state machine behind the ghost-text suggestions.

Key presses arrive as :class:`~editor_adapter.EditAction` values. Each action
has one handler, registered once by :meth:`WidgetDispatcher.install`:

* ``SELF_INSERT`` runs the built-in insert and then asks for a suggestion.
* Every destructive or navigational built-in clears the suggestion first and
  then hands over to the built-in it replaced.
* ``SUGGEST``, ``ACCEPT``, ``ACCEPT_WORD`` and ``CLEAR`` are the suggestion
  widgets proper; the two accept widgets fall back to ``END_OF_LINE`` and
  ``FORWARD_WORD`` when nothing is shown.

:meth:`WidgetDispatcher.on_redraw` runs before every render and clears a
suggestion whose buffer changed behind our back (tab completion, paste, ...).
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Callable, Dict, Optional

from editor_adapter import EditAction, EditorAdapter, NativeHandler
from session_state import EditingSession
from shell_config import Settings
from suggestion_client import NicehistClient
from suggestion_store import SuggestionState, SuggestionStore

logger = logging.getLogger(__name__)

CLEARING_ACTIONS = frozenset(
    {
        EditAction.BACKWARD_DELETE_CHAR,
        EditAction.DELETE_CHAR,
        EditAction.KILL_LINE,
        EditAction.UNIX_LINE_DISCARD,
        EditAction.KILL_WORD,
        EditAction.BACKWARD_KILL_WORD,
        EditAction.UNIX_WORD_RUBOUT,
        EditAction.HISTORY_UP,
        EditAction.HISTORY_DOWN,
        EditAction.HISTORY_SEARCH_BACKWARD,
        EditAction.BEGINNING_OF_LINE,
        EditAction.END_OF_LINE,
        EditAction.ACCEPT_LINE,
        EditAction.COMPLETE,
    }
)

_NEXT_WORD = re.compile(r"\s*\S+")


def next_word(suffix: str) -> str:
    """Leading whitespace plus the first whitespace-delimited token of ``suffix``."""
    match = _NEXT_WORD.match(suffix)
    return match.group(0) if match else suffix


class WidgetDispatcher:
    def __init__(
        self,
        editor: EditorAdapter,
        store: SuggestionStore,
        client: NicehistClient,
        session: EditingSession,
        settings: Settings,
        cwd: Callable[[], str] = os.getcwd,
    ) -> None:
        self.editor = editor
        self.store = store
        self.client = client
        self.session = session
        self.settings = settings
        self.cwd = cwd
        self.handlers: Dict[EditAction, Callable[[Any], None]] = {}
        self.next_handlers: Dict[EditAction, NativeHandler] = {}

    def install(self) -> None:
        """Build the action table, capturing each built-in we wrap."""
        if self.handlers:
            return
        for action in EditAction:
            if not action.is_widget:
                self.next_handlers[action] = self.editor.native_handler(action)

        self.handlers[EditAction.SELF_INSERT] = self.self_insert
        for action in CLEARING_ACTIONS:
            self.handlers[action] = self._clear_then(action)
        self.handlers[EditAction.FORWARD_WORD] = self.next_handlers[EditAction.FORWARD_WORD]
        self.handlers[EditAction.SUGGEST] = self.suggest
        self.handlers[EditAction.ACCEPT] = self.accept
        self.handlers[EditAction.ACCEPT_WORD] = self.accept_word
        self.handlers[EditAction.CLEAR] = self.clear

    def dispatch(self, action: EditAction, event: Any = None) -> None:
        if not self.handlers:
            self.install()
        self.handlers[action](event)

    def _clear_then(self, action: EditAction) -> Callable[[Any], None]:
        next_handler = self.next_handlers[action]

        def handler(event: Any) -> None:
            self.store.clear(self.editor)
            next_handler(event)

        handler.__name__ = f"clear_then_{action.name.lower()}"
        return handler

    @property
    def state(self) -> SuggestionState:
        return self.store.state

    def self_insert(self, event: Any) -> None:
        self.next_handlers[EditAction.SELF_INSERT](event)
        self.update_suggestion()

    def update_suggestion(self) -> None:
        prefix = self.editor.text
        if len(prefix) < self.settings.min_prefix_length:
            self.store.clear(self.editor)
            return
        if not self.store.should_request(prefix, self.settings.min_prefix_length):
            return
        self.request_suggestion(prefix)

    def request_suggestion(self, prefix: str) -> None:
        self.store.begin_request(prefix)
        candidates = self.client.predict(
            prefix,
            self.cwd(),
            limit=self.settings.max_suggestions,
            last_cmd=self.session.last_command or None,
            prev_cmd=self.session.previous_command or None,
        )
        # The buffer may have moved on while the predictor was running.
        suggestion = self.store.reconcile(candidates, self.editor.text)
        if suggestion is None or not self.store.show(self.editor, suggestion):
            self.store.settle_idle(self.editor)

    def suggest(self, event: Any = None) -> None:
        self.update_suggestion()

    def accept(self, event: Any = None) -> None:
        suggestion = self.store.suggestion
        if self.store.state is SuggestionState.SHOWN and suggestion and suggestion.text != self.editor.text:
            self.editor.text = suggestion.text
            self.editor.cursor = len(suggestion.text)
            self.store.clear(self.editor)
        else:
            self.next_handlers[EditAction.END_OF_LINE](event)

    def accept_word(self, event: Any = None) -> None:
        suggestion = self.store.suggestion
        buffer = self.editor.text
        if not (self.store.state is SuggestionState.SHOWN and suggestion and suggestion.text.startswith(buffer)):
            self.next_handlers[EditAction.FORWARD_WORD](event)
            return
        word = next_word(suggestion.text[len(buffer):])
        if not word:
            return
        self.editor.text = buffer + word
        self.editor.cursor = len(self.editor.text)
        self.update_suggestion()

    def clear(self, event: Any = None) -> None:
        self.store.clear(self.editor)

    def on_redraw(self, _sender: Optional[Any] = None) -> None:
        """Clear a shown suggestion whose buffer no longer matches what was drawn."""
        if not self.store.has_drifted(self.editor.text):
            return
        logger.debug("buffer drifted from %r, clearing", self.store.displayed_for_buffer)
        self.store.mark_stale()
        self.store.clear(self.editor)
