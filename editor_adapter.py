"""prompt_toolkit side of the ghost-text widgets.

The widget logic in :mod:`widgets` only talks to an :class:`EditorAdapter`;
this module provides the prompt_toolkit implementation of that interface,
the input processor that draws the ghost text, and the key table that
routes key presses to widget actions.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from prompt_toolkit.buffer import Buffer
from prompt_toolkit.enums import DEFAULT_BUFFER
from prompt_toolkit.filters import (
    emacs_insert_mode,
    has_completions,
    has_focus,
    vi_insert_mode,
)
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.bindings.named_commands import get_by_name
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout.processors import (
    Processor,
    Transformation,
    TransformationInput,
)

from shell_config import Settings
from suggestion_store import Overlay

logger = logging.getLogger(__name__)

NativeHandler = Callable[[Any], None]

GHOST_TEXT_STYLE = "class:ghost-text"
# Matches the dim grey zsh users get from region_highlight fg=8
STYLE_RULES = {"ghost-text": "fg:ansibrightblack"}


class EditAction(enum.Enum):
    """Editing actions the widgets intercept, plus the suggestion widgets."""

    SELF_INSERT = "self-insert"
    BACKWARD_DELETE_CHAR = "backward-delete-char"
    DELETE_CHAR = "delete-char"
    KILL_LINE = "kill-line"
    UNIX_LINE_DISCARD = "unix-line-discard"
    KILL_WORD = "kill-word"
    BACKWARD_KILL_WORD = "backward-kill-word"
    UNIX_WORD_RUBOUT = "unix-word-rubout"
    HISTORY_UP = "previous-history"
    HISTORY_DOWN = "next-history"
    HISTORY_SEARCH_BACKWARD = "reverse-search-history"
    BEGINNING_OF_LINE = "beginning-of-line"
    END_OF_LINE = "end-of-line"
    FORWARD_WORD = "forward-word"
    ACCEPT_LINE = "accept-line"
    COMPLETE = "menu-complete"

    SUGGEST = "ghost-suggest"
    ACCEPT = "ghost-accept"
    ACCEPT_WORD = "ghost-accept-word"
    CLEAR = "ghost-clear"

    @property
    def is_widget(self) -> bool:
        return self.value.startswith("ghost-")


class EditorAdapter(Protocol):
    """What the widgets need from a line editor."""

    text: str
    cursor: int
    overlay: Optional[Overlay]
    highlight: Optional[Tuple[int, int]]

    def show_overlay(self, overlay: Overlay) -> None: ...

    def clear_overlay(self) -> None: ...

    def native_handler(self, action: EditAction) -> NativeHandler: ...

    def last_history_entry(self) -> str: ...


class PromptToolkitEditor:
    """:class:`EditorAdapter` over a prompt_toolkit :class:`Buffer`."""

    def __init__(self, buffer: Buffer) -> None:
        self.buffer = buffer
        self.overlay: Optional[Overlay] = None
        self.highlight: Optional[Tuple[int, int]] = None

    @property
    def text(self) -> str:
        return self.buffer.text

    @text.setter
    def text(self, value: str) -> None:
        self.buffer.text = value

    @property
    def cursor(self) -> int:
        return self.buffer.cursor_position

    @cursor.setter
    def cursor(self, value: int) -> None:
        self.buffer.cursor_position = value

    def show_overlay(self, overlay: Overlay) -> None:
        self.overlay = overlay
        self.highlight = (overlay.start, overlay.end)

    def clear_overlay(self) -> None:
        self.overlay = None
        self.highlight = None

    def native_handler(self, action: EditAction) -> NativeHandler:
        if action.is_widget:
            raise ValueError(f"{action.name} has no built-in counterpart")
        handler = get_by_name(action.value).call
        if action is not EditAction.ACCEPT_LINE:
            return handler

        def accept_line(event) -> None:
            self.expand_history()
            handler(event)

        return accept_line

    def expand_history(self) -> None:
        """Replace ``!!`` with the previous history entry before the line is committed."""
        if "!!" not in self.text:
            return
        previous = self.last_history_entry()
        if previous:
            self.text = self.text.replace("!!", previous)
            self.cursor = len(self.text)

    def last_history_entry(self) -> str:
        strings = self.buffer.history.get_strings()
        return strings[-1] if strings else ""


class GhostTextProcessor(Processor):
    """Append the current overlay after the last line of the input."""

    def __init__(self, editor: PromptToolkitEditor, style: str = GHOST_TEXT_STYLE) -> None:
        self.editor = editor
        self.style = style

    def apply_transformation(self, ti: TransformationInput) -> Transformation:
        overlay = self.editor.overlay
        if overlay is None or ti.lineno != ti.document.line_count - 1:
            return Transformation(fragments=ti.fragments)
        return Transformation(fragments=ti.fragments + [(self.style, overlay.text)])


# key sequence -> action; the toggled accept keys are added in build_key_bindings
KEY_TABLE: Dict[Tuple[str, ...], EditAction] = {
    ("backspace",): EditAction.BACKWARD_DELETE_CHAR,
    ("delete",): EditAction.DELETE_CHAR,
    ("c-k",): EditAction.KILL_LINE,
    ("c-u",): EditAction.UNIX_LINE_DISCARD,
    ("escape", "d"): EditAction.KILL_WORD,
    ("escape", "backspace"): EditAction.BACKWARD_KILL_WORD,
    ("c-w",): EditAction.UNIX_WORD_RUBOUT,
    ("c-r",): EditAction.HISTORY_SEARCH_BACKWARD,
    ("c-a",): EditAction.BEGINNING_OF_LINE,
    ("home",): EditAction.BEGINNING_OF_LINE,
    ("end",): EditAction.END_OF_LINE,
    ("enter",): EditAction.ACCEPT_LINE,
    ("c-i",): EditAction.COMPLETE,
    ("escape", "f"): EditAction.ACCEPT_WORD,
    ("escape", "F"): EditAction.ACCEPT_WORD,
    ("c-x", "c-s"): EditAction.SUGGEST,
    ("c-g",): EditAction.CLEAR,
}

# history keys step through the completion menu while it is open
HISTORY_KEYS: Dict[Tuple[str, ...], EditAction] = {
    ("up",): EditAction.HISTORY_UP,
    ("c-p",): EditAction.HISTORY_UP,
    ("down",): EditAction.HISTORY_DOWN,
    ("c-n",): EditAction.HISTORY_DOWN,
}


def build_key_bindings(dispatcher, settings: Settings) -> KeyBindings:
    """Route key presses on the main buffer to ``dispatcher.dispatch``."""
    kb = KeyBindings()
    editing = has_focus(DEFAULT_BUFFER) & (emacs_insert_mode | vi_insert_mode)

    def bind(keys, action, filter=editing):
        @kb.add(*keys, filter=filter)
        def _(event):
            dispatcher.dispatch(action, event)

    bind((Keys.Any,), EditAction.SELF_INSERT)
    for keys, action in KEY_TABLE.items():
        bind(keys, action)
    for keys, action in HISTORY_KEYS.items():
        bind(keys, action, filter=editing & ~has_completions)

    if settings.bind_ctrl_e:
        bind(("c-e",), EditAction.ACCEPT)
    if settings.bind_right_arrow:
        bind(("right",), EditAction.ACCEPT)

    logger.debug("registered %d key bindings", len(kb.bindings))
    return kb
