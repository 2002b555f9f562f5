"""Tests for aider_mcp.reconcile.runner against real child processes."""

import sys
from pathlib import Path

import pytest

from aider_mcp.core.errors import AiderMcpError, NonZeroExit, ProcessTimeout, SpawnError
from aider_mcp.reconcile.runner import ProcessRunner


def _py(code):
    return ["-c", code]


class TestProcessRunner:

    def test_success_buffers_both_streams(self, tmp_path):
        result = ProcessRunner().run(
            sys.executable,
            _py("import sys; print('out'); print('err', file=sys.stderr)"),
            tmp_path,
        )
        assert result.exit_code == 0
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    def test_runs_in_requested_cwd(self, tmp_path):
        result = ProcessRunner().run(sys.executable, _py("import os; print(os.getcwd())"), tmp_path)
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_stdin_is_closed(self, tmp_path):
        result = ProcessRunner().run(sys.executable, _py("import sys; print(repr(sys.stdin.read()))"), tmp_path)
        assert result.stdout.strip() == "''"

    def test_invalid_utf8_is_replaced(self, tmp_path):
        result = ProcessRunner().run(
            sys.executable,
            _py("import sys; sys.stdout.buffer.write(b'ok \\xff end')"),
            tmp_path,
        )
        assert result.stdout == "ok \ufffd end"

    def test_nonzero_exit_carries_code_and_stderr(self, tmp_path):
        with pytest.raises(NonZeroExit) as exc_info:
            ProcessRunner().run(
                sys.executable,
                _py("import sys; sys.stderr.write('command not found'); sys.exit(1)"),
                tmp_path,
            )
        assert exc_info.value.exit_code == 1
        assert exc_info.value.stderr == "command not found"
        assert "command not found" in str(exc_info.value)

    def test_missing_executable_is_spawn_error(self, tmp_path):
        missing = str(tmp_path / "no-such-aider")
        with pytest.raises(SpawnError) as exc_info:
            ProcessRunner().run(missing, [], tmp_path)
        assert exc_info.value.executable == missing
        assert str(exc_info.value).startswith("Failed to spawn Aider CLI:")
        if sys.platform != "win32":
            assert missing in str(exc_info.value)
        assert isinstance(exc_info.value, AiderMcpError)

    @pytest.mark.skipif(sys.platform == "win32", reason="Windows does not report the directory name")
    def test_missing_cwd_is_spawn_error_naming_the_directory(self, tmp_path):
        with pytest.raises(SpawnError) as exc_info:
            ProcessRunner().run(sys.executable, _py("pass"), tmp_path / "gone")
        assert str(tmp_path / "gone") in str(exc_info.value)

    def test_timeout_kills_child(self, tmp_path):
        runner = ProcessRunner(timeout_seconds=0.5)
        with pytest.raises(ProcessTimeout) as exc_info:
            runner.run(sys.executable, _py("import time; time.sleep(30)"), tmp_path)
        assert exc_info.value.timeout_seconds == 0.5

    def test_no_timeout_by_default(self):
        assert ProcessRunner().timeout_seconds is None
