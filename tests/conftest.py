from dataclasses import dataclass
import os
from pathlib import Path
import sys
from typing import Callable, Dict, List, Optional

import pytest

# Modules live at the repository root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from editor_adapter import EditAction  # noqa: E402
from session_state import EditingSession  # noqa: E402
from shell_config import load_settings  # noqa: E402
from suggestion_store import SuggestionStore  # noqa: E402
from widgets import WidgetDispatcher  # noqa: E402


@dataclass
class KeyEvent:
    data: str = ""


class FakeEditor:
    """In-memory line editor with just enough built-in behaviour for the widgets."""

    def __init__(self, text: str = "", history: Optional[List[str]] = None) -> None:
        self.text = text
        self.cursor = len(text)
        self.overlay = None
        self.highlight = None
        self.history = list(history or [])
        self.native_calls: List[EditAction] = []
        # overlay as each built-in saw it
        self.native_overlays: list = []
        self.overlay_clears = 0

    def show_overlay(self, overlay) -> None:
        self.overlay = overlay
        self.highlight = (overlay.start, overlay.end)

    def clear_overlay(self) -> None:
        self.overlay = None
        self.highlight = None
        self.overlay_clears += 1

    def last_history_entry(self) -> str:
        return self.history[-1] if self.history else ""

    def native_handler(self, action: EditAction):
        def handler(event) -> None:
            self.native_calls.append(action)
            self.native_overlays.append(self.overlay)
            if action is EditAction.SELF_INSERT:
                self.text = self.text[: self.cursor] + event.data + self.text[self.cursor:]
                self.cursor += len(event.data)
            elif action is EditAction.BACKWARD_DELETE_CHAR and self.cursor:
                self.text = self.text[: self.cursor - 1] + self.text[self.cursor:]
                self.cursor -= 1
            elif action is EditAction.KILL_LINE:
                self.text = self.text[: self.cursor]
            elif action is EditAction.BEGINNING_OF_LINE:
                self.cursor = 0
            elif action is EditAction.END_OF_LINE:
                self.cursor = len(self.text)
            elif action is EditAction.FORWARD_WORD:
                rest = self.text[self.cursor:]
                stripped = rest.lstrip()
                word = stripped.split(" ", 1)[0]
                self.cursor += len(rest) - len(stripped) + len(word)

        return handler


class FakeClient:
    """Stands in for :class:`suggestion_client.NicehistClient`."""

    def __init__(self, responses: Optional[Dict[str, List[str]]] = None) -> None:
        self.responses = responses or {}
        self.predict_calls: List[dict] = []
        self.store_calls: List[dict] = []
        self.on_predict: Optional[Callable[[str], None]] = None
        self.cli_present = True
        self.available = True

    def predict(self, prefix, cwd, limit=None, last_cmd=None, prev_cmd=None):
        self.predict_calls.append(
            {"prefix": prefix, "cwd": cwd, "limit": limit, "last_cmd": last_cmd, "prev_cmd": prev_cmd}
        )
        if self.on_predict is not None:
            self.on_predict(prefix)
        return list(self.responses.get(prefix, []))

    def store_async(self, cmd, cwd, **kwargs):
        if not self.cli_present:
            return None
        self.store_calls.append({"cmd": cmd, "cwd": cwd, **kwargs})
        return object()

    def context(self, cwd):
        return {}

    def frecent_add_async(self, path, kind="d"):
        return None

    def probe(self):
        return self.available


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Each test runs in its own tmp cwd with XDG dirs inside it."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / ".local" / "share"))
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path / "run"))
    for name in list(os.environ):
        if name.startswith("GHOSTSHELL_"):
            monkeypatch.delenv(name)
    return tmp_path


@pytest.fixture
def settings(tmp_path: Path):
    return load_settings({"HOME": str(tmp_path), "XDG_RUNTIME_DIR": str(tmp_path / "run")})


@pytest.fixture
def editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def session() -> EditingSession:
    return EditingSession(session_id=4242)


@pytest.fixture
def store() -> SuggestionStore:
    return SuggestionStore()


@pytest.fixture
def dispatcher(editor, store, client, session, settings, tmp_path) -> WidgetDispatcher:
    d = WidgetDispatcher(editor, store, client, session, settings, cwd=lambda: str(tmp_path))
    d.install()
    return d


def type_text(dispatcher: WidgetDispatcher, text: str) -> None:
    """Feed characters through the self-insert widget, redrawing after each key."""
    for ch in text:
        dispatcher.dispatch(EditAction.SELF_INSERT, KeyEvent(ch))
        dispatcher.on_redraw()
