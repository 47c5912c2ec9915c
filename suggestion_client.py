import logging
import os
import shutil
import subprocess
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

CLI_NAME = "nicehist"
# Upper bound for background store / frecent-add calls (seconds)
BACKGROUND_TIMEOUT = 5.0
# Liveness probe and pass-through queries (seconds)
QUERY_TIMEOUT = 2.0

_FAILURES = (OSError, subprocess.SubprocessError, UnicodeDecodeError)


class CLINotFoundError(LookupError):
    """No ``nicehist`` binary could be located."""


def parse_plain(output):
    """Split ``--plain`` output into candidate lines, most likely first."""
    return [line for line in output.splitlines() if line.strip()]


def parse_context(output):
    """Parse ``key=value`` lines from ``context`` into a dict."""
    context = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep and key:
            context[key] = value
    return context


class NicehistClient:
    """Thin subprocess wrapper around the ``nicehist`` CLI.

    Every hot-path call absorbs failures: a missing binary, a non-zero exit,
    a timeout or undecodable output all look like "no result" to the caller.
    """

    def __init__(self, settings):
        self.settings = settings
        self._cli_path = None
        # None until probed; predictions are skipped while False
        self.available = None

    def resolve_cli(self):
        """Locate the CLI binary, caching the first hit."""
        if self._cli_path and os.access(self._cli_path, os.X_OK):
            return self._cli_path

        candidates = []
        if self.settings.cli_path:
            candidates.append(self.settings.cli_path)
        if self.settings.daemon_path and self.settings.daemon_path.endswith("-daemon"):
            candidates.append(self.settings.daemon_path[: -len("-daemon")])
        candidates.append(shutil.which(CLI_NAME))
        candidates.append("/usr/local/bin/" + CLI_NAME)
        candidates.append(str(Path.home() / ".cargo" / "bin" / CLI_NAME))

        for path in candidates:
            if path and os.path.isfile(path) and os.access(path, os.X_OK):
                self._cli_path = path
                logger.debug("Using CLI at %s", path)
                return path
        raise CLINotFoundError(f"{CLI_NAME} binary not found")

    def _run(self, args, timeout):
        argv = [self.resolve_cli()] + args
        result = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
            check=False,
        )
        if result.returncode != 0:
            logger.debug("%s exited with %s", args[0], result.returncode)
            return None
        return result.stdout.decode("utf-8")

    def _query(self, args, timeout):
        try:
            return self._run(args, timeout)
        except CLINotFoundError:
            logger.debug("%s skipped: CLI not found", args[0])
        except subprocess.TimeoutExpired:
            logger.debug("%s timed out after %.3fs", args[0], timeout)
        except _FAILURES as e:
            logger.debug("%s failed: %s", args[0], e)
        return None

    def _spawn(self, args):
        """Run ``args`` on a detached daemon thread; the outcome is never reported back."""
        try:
            argv = [self.resolve_cli()] + args
        except CLINotFoundError:
            logger.debug("%s skipped: CLI not found", args[0])
            return None

        def run():
            try:
                subprocess.run(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=BACKGROUND_TIMEOUT,
                    check=False,
                )
            except _FAILURES as e:
                logger.debug("background %s failed: %s", args[0], e)

        worker = threading.Thread(target=run, name=f"nicehist-{args[0]}", daemon=True)
        worker.start()
        return worker

    def predict(self, prefix, cwd, limit=None, last_cmd=None, prev_cmd=None):
        """Return ranked candidate commands for ``prefix`` or ``[]`` on any failure."""
        if self.available is False:
            return []
        if limit is None:
            limit = self.settings.max_suggestions
        args = ["predict", "--prefix", prefix, "--cwd", str(cwd), "--limit", str(limit)]
        if last_cmd:
            args += ["--last-cmd", last_cmd]
        if prev_cmd:
            args += ["--prev-cmd", prev_cmd]
        args.append("--plain")

        output = self._query(args, self.settings.prediction_timeout)
        if not output:
            return []
        return parse_plain(output)

    def store_async(
        self,
        cmd,
        cwd,
        exit_status=None,
        duration_ms=None,
        start_time=None,
        session_id=None,
        prev_cmd=None,
        prev2_cmd=None,
    ):
        """Fire-and-forget ``store``; returns the worker thread or ``None``."""
        args = ["store", "--cmd", cmd, "--cwd", str(cwd)]
        if exit_status is not None:
            args += ["--exit-status", str(exit_status)]
        if duration_ms is not None:
            args += ["--duration-ms", str(duration_ms)]
        if start_time is not None:
            args += ["--start-time", str(start_time)]
        if session_id is not None:
            args += ["--session-id", str(session_id)]
        if prev_cmd:
            args += ["--prev-cmd", prev_cmd]
        if prev2_cmd:
            args += ["--prev2-cmd", prev2_cmd]
        return self._spawn(args)

    def context(self, cwd):
        output = self._query(["context", "--cwd", str(cwd)], QUERY_TIMEOUT)
        if not output:
            return {}
        return parse_context(output)

    def ping(self):
        return self._query(["ping"], QUERY_TIMEOUT) is not None

    def daemon_running(self):
        return self.settings.socket_path.is_socket() and self.ping()

    def probe(self):
        """Re-check liveness; the result gates ``predict``."""
        self.available = self.ping()
        logger.debug("daemon available: %s", self.available)
        return self.available

    def search(self, pattern, limit=20, directory=None):
        args = ["search", pattern, "--limit", str(limit), "--plain"]
        if directory:
            args += ["--dir", str(directory)]
        output = self._query(args, QUERY_TIMEOUT)
        return parse_plain(output) if output else []

    def frecent(self, terms=(), kind="d", limit=20):
        args = ["frecent"] + list(terms) + [f"-{kind}", "--plain", "--limit", str(limit)]
        output = self._query(args, QUERY_TIMEOUT)
        return parse_plain(output) if output else []

    def frecent_add_async(self, path, kind="d"):
        return self._spawn(["frecent-add", str(path), "-t", kind])
