import argparse
import os
import shlex
import subprocess
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, PathCompleter
from prompt_toolkit.document import Document
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style

from command_logger import CommandLogger
from editor_adapter import STYLE_RULES, GhostTextProcessor, PromptToolkitEditor, build_key_bindings
from session_state import ContextCache, EditingSession
from shell_config import load_settings
from shell_logging import setup_logging
from suggestion_client import NicehistClient
from suggestion_store import SuggestionStore
from widgets import WidgetDispatcher

PROMPT = "ghost> "
# Shown in the bottom toolbar, in this order
CONTEXT_KEYS = ("vcs", "branch", "project")
# Lines containing these go straight to /bin/sh, builtins included
SHELL_OPERATORS = ("&&", "||", ";", "|", ">", "<", "`", "$(")


# Tab completes the word under the cursor as a path
class ShellCompleter(Completer):
    def __init__(self):
        self.paths = PathCompleter(expanduser=True)

    def get_completions(self, document, complete_event):
        word = document.get_word_before_cursor(WORD=True)
        sub = Document(word, cursor_position=len(word))
        yield from self.paths.get_completions(sub, complete_event)


class InteractiveShell:
    def __init__(self, settings, client=None, session=None):
        self.settings = settings
        self.client = client or NicehistClient(settings)
        self.session = session or EditingSession()
        self.context_cache = ContextCache()
        self.context = {}
        self.store = SuggestionStore()

        history = None
        if settings.history_path:
            settings.history_path.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(settings.history_path))

        self.prompt_session = PromptSession(
            history=history,
            completer=ShellCompleter(),
            complete_while_typing=False,
            bottom_toolbar=self.render_toolbar,
            style=Style.from_dict(STYLE_RULES),
        )
        self.editor = PromptToolkitEditor(self.prompt_session.default_buffer)
        self.dispatcher = WidgetDispatcher(self.editor, self.store, self.client, self.session, settings)
        self.logger = CommandLogger(settings, self.client, self.session, history=self.editor.last_history_entry)

        if settings.suggestions_enabled:
            self.dispatcher.install()
            self.prompt_session.key_bindings = build_key_bindings(self.dispatcher, settings)
            self.prompt_session.input_processors = [GhostTextProcessor(self.editor)]
            self.prompt_session.app.before_render += self.dispatcher.on_redraw

        self.builtins = {
            "cd": self.builtin_cd,
            "z": self.builtin_z,
            "d": self.builtin_d,
            "f": self.builtin_f,
            "hsearch": self.builtin_hsearch,
            "ghost-status": self.builtin_status,
        }

    def render_toolbar(self):
        parts = [self.context[key] for key in CONTEXT_KEYS if self.context.get(key)]
        cwd = os.getcwd().replace(os.path.expanduser("~"), "~", 1)
        return "  ".join([cwd] + parts)

    def refresh_context(self):
        if self.client.available:
            self.context = self.context_cache.get(os.getcwd(), self.client.context)
        else:
            self.context = {}

    def chpwd(self):
        self.context_cache.invalidate()
        self.client.frecent_add_async(os.getcwd(), "d")

    def execute(self, line):
        """Run one command line and return its exit status."""
        argv = []
        if not any(op in line for op in SHELL_OPERATORS):
            try:
                argv = shlex.split(line)
            except ValueError:
                pass
        if argv and argv[0] in self.builtins:
            return self.builtins[argv[0]](argv[1:])
        try:
            return subprocess.run(line, shell=True).returncode
        except KeyboardInterrupt:
            return 130
        except OSError as e:
            print(f"ghost-shell: {e}", file=sys.stderr)
            return 127

    def builtin_cd(self, args):
        if not args:
            target = os.path.expanduser("~")
        elif args[0] == "-":
            target = os.environ.get("OLDPWD", os.getcwd())
        else:
            target = os.path.expanduser(args[0])
        previous = os.getcwd()
        try:
            os.chdir(target)
        except OSError as e:
            print(f"cd: {e.strerror}: {args[0] if args else target}", file=sys.stderr)
            return 1
        os.environ["OLDPWD"] = previous
        os.environ["PWD"] = os.getcwd()
        self.chpwd()
        return 0

    def builtin_z(self, args):
        if not args:
            return self.builtin_d(args)
        matches = self.client.frecent(args, "d", limit=1)
        if matches and os.path.isdir(matches[0]):
            return self.builtin_cd([matches[0]])
        print("z: no match", file=sys.stderr)
        return 1

    def builtin_d(self, args):
        for path in self.client.frecent(args, "d"):
            print(path)
        return 0

    def builtin_f(self, args):
        if not args:
            for path in self.client.frecent(args, "f"):
                print(path)
            return 0
        matches = self.client.frecent(args, "f", limit=1)
        if matches:
            print(matches[0])
            return 0
        print("f: no match", file=sys.stderr)
        return 1

    def builtin_hsearch(self, args):
        if not args:
            print("usage: hsearch PATTERN [DIR]", file=sys.stderr)
            return 2
        directory = args[1] if len(args) > 1 else None
        for line in self.client.search(args[0], directory=directory):
            print(line)
        return 0

    def builtin_status(self, args):
        running = self.client.daemon_running()
        print(f"socket:      {self.settings.socket_path}")
        print(f"database:    {self.settings.db_path}")
        print(f"suggestions: {'on' if self.settings.suggestions_enabled else 'off'}")
        if not running:
            print("ghost-status: daemon not running", file=sys.stderr)
            return 1
        print("daemon:      running")
        return 0

    def read_line(self):
        self.store.clear(self.editor)
        if not self.client.available:
            self.client.probe()
        self.refresh_context()
        return self.prompt_session.prompt(PROMPT)

    def run(self):
        print("ghost-shell with live suggestions")
        print("Ctrl-E accepts a suggestion, Alt-F accepts one word. Type 'exit' to quit.\n")

        while True:
            try:
                line = self.read_line()
            except KeyboardInterrupt:
                continue
            except EOFError:
                break

            if not line.strip():
                continue
            if line.strip() in ("exit", "quit"):
                break

            self.logger.preexec(line)
            status = self.execute(line)
            self.logger.precmd(status, os.getcwd())

        print("Goodbye!")
        return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="ghost-shell", description="Interactive shell with history-based ghost-text suggestions")
    parser.add_argument("--debug", action="store_true", help="log debug output to stderr")
    parser.add_argument("--min-prefix", type=int, default=None, help="characters typed before asking for a suggestion")
    parser.add_argument("--cli-path", default=None, help="path to the nicehist CLI")
    parser.add_argument("--no-suggestions", action="store_true", help="disable ghost-text suggestions")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"ghost-shell: {e}", file=sys.stderr)
        return 2

    if args.debug:
        settings.debug = True
    if args.min_prefix is not None:
        settings.min_prefix_length = args.min_prefix
    if args.cli_path:
        settings.cli_path = args.cli_path
    if args.no_suggestions:
        settings.suggestions_enabled = False

    setup_logging(settings)
    return InteractiveShell(settings).run()


if __name__ == "__main__":
    sys.exit(main())
