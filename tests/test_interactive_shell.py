import os

import pytest
from prompt_toolkit.application import create_app_session
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

import interactive_shell
from conftest import FakeClient
from interactive_shell import InteractiveShell, ShellCompleter, main


class ShellClient(FakeClient):
    def __init__(self, responses=None, frecent=None, running=False):
        super().__init__(responses)
        self.frecent_results = frecent or {}
        self.running = running
        self.context_calls = []
        self.frecent_added = []
        self.searches = []

    def context(self, cwd):
        self.context_calls.append(cwd)
        return {"vcs": "git", "branch": "main"}

    def frecent(self, terms=(), kind="d", limit=20):
        return list(self.frecent_results.get((tuple(terms), kind), []))[:limit]

    def frecent_add_async(self, path, kind="d"):
        self.frecent_added.append((path, kind))

    def search(self, pattern, limit=20, directory=None):
        self.searches.append((pattern, directory))
        return ["make test"]

    def daemon_running(self):
        return self.running


@pytest.fixture
def shell_client():
    return ShellClient({"gi": ["git status"]})


@pytest.fixture
def shell(settings, shell_client, session):
    # PromptSession binds to the session's input at construction; keep it off the real stdin
    with create_pipe_input() as inp:
        with create_app_session(input=inp, output=DummyOutput()):
            yield InteractiveShell(settings, client=shell_client, session=session)


def test_typed_prefix_accepts_suggestion_end_to_end(settings, shell_client, session):
    with create_pipe_input() as inp:
        with create_app_session(input=inp, output=DummyOutput()):
            shell = InteractiveShell(settings, client=shell_client, session=session)
            inp.send_text("gi\x05\r")
            line = shell.read_line()

    assert line == "git status"
    assert [c["prefix"] for c in shell_client.predict_calls] == ["gi"]
    assert shell.editor.last_history_entry() == "git status"


def test_suggestions_can_be_disabled(settings, shell_client, session):
    settings.suggestions_enabled = False
    with create_pipe_input() as inp:
        with create_app_session(input=inp, output=DummyOutput()):
            shell = InteractiveShell(settings, client=shell_client, session=session)
            inp.send_text("gi\r")
            line = shell.read_line()

    assert line == "gi"
    assert shell_client.predict_calls == []


def test_toolbar_shows_directory_context(shell, shell_client, tmp_path):
    shell.refresh_context()
    shell.refresh_context()

    assert shell_client.context_calls == [str(tmp_path)]
    assert shell.render_toolbar().endswith("git  main")


def test_toolbar_without_daemon(shell, shell_client):
    shell_client.available = False
    shell.refresh_context()
    assert shell.context == {}
    assert shell_client.context_calls == []


def test_cd_refreshes_context_and_records_directory(shell, shell_client, tmp_path, monkeypatch):
    monkeypatch.setenv("OLDPWD", str(tmp_path))
    monkeypatch.setenv("PWD", str(tmp_path))
    target = tmp_path / "src"
    target.mkdir()
    shell.refresh_context()

    assert shell.execute("cd src") == 0
    assert os.getcwd() == str(target)
    assert shell.context_cache.directory is None
    assert shell_client.frecent_added == [(str(target), "d")]

    assert shell.execute("cd -") == 0
    assert os.getcwd() == str(tmp_path)


def test_cd_to_missing_directory_fails(shell, tmp_path, capsys):
    assert shell.execute("cd nowhere") == 1
    assert os.getcwd() == str(tmp_path)
    assert "nowhere" in capsys.readouterr().err


def test_z_jumps_to_frecent_directory(shell, shell_client, tmp_path):
    target = tmp_path / "project"
    target.mkdir()
    shell_client.frecent_results[(("proj",), "d")] = [str(target)]

    assert shell.execute("z proj") == 0
    assert os.getcwd() == str(target)


def test_z_without_match(shell, capsys):
    assert shell.execute("z nothing") == 1
    assert "no match" in capsys.readouterr().err


def test_hsearch(shell, shell_client, capsys):
    assert shell.execute("hsearch make /work") == 0
    assert shell_client.searches == [("make", "/work")]
    assert capsys.readouterr().out == "make test\n"
    assert shell.execute("hsearch") == 2


def test_status_reports_missing_daemon(shell, capsys):
    assert shell.execute("ghost-status") == 1
    assert "daemon not running" in capsys.readouterr().err


def test_status_with_daemon(shell, shell_client, capsys):
    shell_client.running = True
    assert shell.execute("ghost-status") == 0
    assert "running" in capsys.readouterr().out


def test_external_commands_return_exit_status(shell):
    assert shell.execute("true") == 0
    assert shell.execute("exit 3") == 3


def test_operators_bypass_builtins(shell, tmp_path):
    (tmp_path / "src").mkdir()
    assert shell.execute("cd src && true") == 0
    assert os.getcwd() == str(tmp_path)


def test_completer_works_on_last_word(tmp_path):
    from prompt_toolkit.completion import CompleteEvent
    from prompt_toolkit.document import Document

    (tmp_path / "Makefile").write_text("")
    doc = Document("cat Make", cursor_position=8)
    completions = list(ShellCompleter().get_completions(doc, CompleteEvent(completion_requested=True)))
    assert [c.text for c in completions] == ["file"]


def test_main_rejects_bad_ignore_pattern(monkeypatch, capsys):
    monkeypatch.setenv("GHOSTSHELL_IGNORE_PATTERNS", "(unclosed")
    assert main([]) == 2
    assert "IGNORE_PATTERNS" in capsys.readouterr().err


def test_main_applies_flags(monkeypatch):
    seen = {}

    class Recorder:
        def __init__(self, settings):
            seen["settings"] = settings

        def run(self):
            return 0

    monkeypatch.setattr(interactive_shell, "InteractiveShell", Recorder)
    monkeypatch.setattr(interactive_shell, "setup_logging", lambda settings: None)

    assert main(["--min-prefix", "3", "--no-suggestions", "--cli-path", "/opt/nicehist"]) == 0
    settings = seen["settings"]
    assert settings.min_prefix_length == 3
    assert not settings.suggestions_enabled
    assert settings.cli_path == "/opt/nicehist"
