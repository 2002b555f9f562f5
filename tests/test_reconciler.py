"""Tests for aider_mcp.reconcile.reconciler: the end-to-end result recovery."""

import logging
import sys
import threading
from pathlib import Path

import pytest

from aider_mcp.core.config import AiderMcpConfig, ExecutableConfig, ExtractionConfig, ErrorPatternConfig
from aider_mcp.core.errors import NonZeroExit, SpawnError
from aider_mcp.core.types import RawProcessResult
from aider_mcp.reconcile.locks import RootLockRegistry
from aider_mcp.reconcile.reconciler import ResultReconciler
from aider_mcp.reconcile.runner import ProcessRunner
from aider_mcp.reconcile.tailer import HistoryTailer

HISTORY = ".aider.chat.history.md"


class AppendingRunner:
    """Stands in for Aider: appends to the chat history, then exits."""

    def __init__(self, history_path, text, exit_code=0, stderr=""):
        self.history_path = Path(history_path)
        self.text = text
        self.exit_code = exit_code
        self.stderr = stderr
        self.calls = []

    def run(self, executable, args, cwd):
        self.calls.append((executable, list(args), Path(cwd)))
        if self.text:
            with open(self.history_path, "a", encoding="utf-8") as f:
                f.write(self.text)
        if self.exit_code != 0:
            raise NonZeroExit(self.exit_code, self.stderr)
        return RawProcessResult(stdout="", stderr="", exit_code=0)


def _fast_tailer():
    return HistoryTailer(settle_min=0, poll_interval=0.001, max_wait=0.05)


def _reconciler(runner, **kwargs):
    return ResultReconciler(executable="aider", runner=runner, tailer=_fast_tailer(), **kwargs)


@pytest.fixture
def repo(tmp_path):
    (tmp_path / ".git").mkdir()
    return tmp_path


class TestExecute:

    def test_summary_from_history(self, repo):
        history = repo / HISTORY
        history.write_text("x" * 100)
        runner = AppendingRunner(history, "...\n<summary>\nCreated app.py with a CLI entry point.\n</summary>\n")
        result = _reconciler(runner).execute(["--yes"], repo)
        assert result.summary_text == "Created app.py with a CLI entry point."
        assert result.error_text is None
        assert result.succeeded is True

    def test_previous_sessions_are_ignored(self, repo):
        history = repo / HISTORY
        history.write_text("\n<summary>stale result</summary>\nlitellm.APIError: old\n")
        runner = AppendingRunner(history, "\n#### new task\nnothing to report\n")
        result = _reconciler(runner).execute([], repo)
        assert result.summary_text is None
        assert result.error_text is None
        assert result.succeeded is False

    def test_exit_zero_with_traceback_is_not_success(self, repo):
        runner = AppendingRunner(
            repo / HISTORY,
            "Traceback (most recent call last):\n...\nValueError: x is not defined",
        )
        result = _reconciler(runner).execute([], repo)
        assert result.succeeded is False
        assert result.error_text == "ValueError: x is not defined"

    def test_rate_limit_error(self, repo):
        runner = AppendingRunner(repo / HISTORY, "litellm.RateLimitError: You exceeded your current quota\n")
        result = _reconciler(runner).execute([], repo)
        assert result.error_text == "litellm.RateLimitError: You exceeded your current quota"
        assert result.summary_text is None

    def test_history_never_written(self, repo):
        runner = AppendingRunner(repo / HISTORY, "")
        result = _reconciler(runner).execute([], repo)
        assert (result.summary_text, result.error_text, result.succeeded) == (None, None, False)

    def test_unreadable_history_still_yields_result(self, repo, caplog):
        (repo / HISTORY).mkdir()
        runner = AppendingRunner(repo / HISTORY, "")
        with caplog.at_level(logging.WARNING, logger="AiderMCP.reconcile.tailer"):
            result = _reconciler(runner).execute([], repo)
        assert (result.summary_text, result.error_text, result.succeeded) == (None, None, False)
        assert len(runner.calls) == 1
        assert "Could not read chat history" in caplog.text

    def test_window_is_logged(self, repo, caplog):
        history = repo / HISTORY
        history.write_text("abc")
        runner = AppendingRunner(history, "\n<summary>done</summary>\n")
        with caplog.at_level(logging.DEBUG, logger="AiderMCP.reconcile.reconciler"):
            _reconciler(runner).execute([], repo)
        assert "Chat history window 3..28 (25 bytes)" in caplog.text

    def test_history_read_at_repo_root_from_subdir(self, repo):
        sub = repo / "pkg"
        sub.mkdir()
        runner = AppendingRunner(repo / HISTORY, "\n<summary>root history</summary>\n")
        result = _reconciler(runner).execute([], sub)
        assert result.summary_text == "root history"
        assert runner.calls[0][2] == sub.resolve()

    def test_nonzero_exit_propagates(self, repo):
        runner = AppendingRunner(repo / HISTORY, "", exit_code=1, stderr="command not found")
        with pytest.raises(NonZeroExit) as exc_info:
            _reconciler(runner).execute([], repo)
        assert "command not found" in str(exc_info.value)

    def test_spawn_error_propagates_from_real_runner(self, repo):
        reconciler = ResultReconciler(
            executable=str(repo / "missing-aider"),
            runner=ProcessRunner(),
            tailer=_fast_tailer(),
        )
        with pytest.raises(SpawnError):
            reconciler.execute([], repo)

    def test_real_child_writing_history(self, repo):
        script = (
            "import sys\n"
            "with open(sys.argv[1], 'a') as f:\n"
            "    f.write('\\n<summary>\\nwritten by child\\n</summary>\\n')\n"
        )
        reconciler = ResultReconciler(
            executable=sys.executable,
            runner=ProcessRunner(),
            tailer=_fast_tailer(),
        )
        result = reconciler.execute(["-c", script, str(repo / HISTORY)], repo)
        assert result.summary_text == "written by child"

    def test_build_request_resolves_history(self, repo):
        request = _reconciler(AppendingRunner(repo / HISTORY, "")).build_request(["--yes"], repo)
        assert request.history_path == repo.resolve() / HISTORY
        assert request.args == ["--yes"]
        assert request.executable == "aider"


class TestConcurrency:

    def test_overlapping_calls_on_same_history_get_own_windows(self, repo):
        history = repo / HISTORY
        started = threading.Event()
        release = threading.Event()

        class SlowRunner(AppendingRunner):
            def run(self, executable, args, cwd):
                started.set()
                release.wait(5)
                return super().run(executable, args, cwd)

        locks = RootLockRegistry()
        first = ResultReconciler(runner=SlowRunner(history, "\n<summary>first</summary>\n"),
                                 tailer=_fast_tailer(), locks=locks)
        second = ResultReconciler(runner=AppendingRunner(history, "\n<summary>second</summary>\n"),
                                  tailer=_fast_tailer(), locks=locks)
        results = {}

        t1 = threading.Thread(target=lambda: results.__setitem__("first", first.execute([], repo)))
        t1.start()
        started.wait(5)
        t2 = threading.Thread(target=lambda: results.__setitem__("second", second.execute([], repo)))
        t2.start()
        release.set()
        t1.join(5)
        t2.join(5)

        assert results["first"].summary_text == "first"
        assert results["second"].summary_text == "second"


class TestFromConfig:

    def test_uses_configured_executable_and_patterns(self, tmp_path):
        (tmp_path / ".git").mkdir()
        config = AiderMcpConfig(
            executable=ExecutableConfig(path=str(tmp_path / "bin" / "aider"), timeout_seconds=12),
            extraction=ExtractionConfig(
                extra_error_patterns=[ErrorPatternConfig(label="custom", pattern=r"FATAL [^\n]*")],
            ),
            data_dir=str(tmp_path / "data"),
            log_dir=str(tmp_path / "logs"),
        )
        reconciler = ResultReconciler.from_config(config)
        assert reconciler.executable == str(tmp_path / "bin" / "aider")

        runner = AppendingRunner(tmp_path / HISTORY, "\nFATAL disk full\n")
        reconciler._runner = runner
        reconciler._tailer = _fast_tailer()
        result = reconciler.execute([], tmp_path)
        assert result.error_text == "FATAL disk full"
        assert (tmp_path / "data" / "locks").is_dir()
