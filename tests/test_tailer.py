"""Tests for aider_mcp.reconcile.tailer: history location and byte windows."""

import logging
from unittest.mock import patch

from aider_mcp.core.config import HistoryConfig
from aider_mcp.reconcile.tailer import HistoryTailer, find_repo_root, resolve_history_path


def _no_wait_tailer(**kwargs):
    return HistoryTailer(settle_min=0, poll_interval=0, max_wait=0, sleep=lambda s: None, **kwargs)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestHistoryLocation:

    def test_repo_root_found_from_nested_dir(self, tmp_path):
        (tmp_path / ".git").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        assert find_repo_root(nested) == tmp_path.resolve()
        assert resolve_history_path(nested) == tmp_path.resolve() / ".aider.chat.history.md"

    def test_git_worktree_file_counts_as_marker(self, tmp_path):
        (tmp_path / ".git").write_text("gitdir: /elsewhere\n")
        assert find_repo_root(tmp_path) == tmp_path.resolve()

    def test_falls_back_to_cwd_outside_repo(self, tmp_path):
        marker = ".definitely-not-a-marker-dir"
        assert find_repo_root(tmp_path, marker) is None
        assert resolve_history_path(tmp_path, "history.md", marker) == tmp_path.resolve() / "history.md"


class TestCapture:

    def test_absent_file_is_zero(self, tmp_path):
        assert _no_wait_tailer().capture(tmp_path / "missing.md") == 0

    def test_existing_file_size_in_bytes(self, tmp_path):
        path = tmp_path / "h.md"
        path.write_bytes("é\n".encode("utf-8"))
        assert _no_wait_tailer().capture(path) == 3


class TestReadWindow:

    def test_missing_file_before_and_after(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        pre = tailer.capture(path)
        assert pre == 0
        assert tailer.read_window(path, pre) == ""

    def test_only_appended_text_is_returned(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        path.write_text("x" * 100)
        pre = tailer.capture(path)
        appended = "...\n<summary>\nCreated app.py with a CLI entry point.\n</summary>\n"
        with open(path, "a") as f:
            f.write(appended)
        assert tailer.read_window(path, pre) == appended

    def test_file_created_during_invocation(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        pre = tailer.capture(path)
        path.write_text("# aider chat started\n")
        assert tailer.read_window(path, pre) == "# aider chat started\n"

    def test_shrunk_file_yields_empty_window(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        path.write_text("a" * 200)
        pre = tailer.capture(path)
        path.write_text("rotated\n")
        assert tailer.read_window(path, pre) == ""
        window = tailer.window(path, pre)
        assert window.is_empty
        assert window.length == 0

    def test_offsets_are_bytes_not_characters(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        path.write_text("héllo wörld\n", encoding="utf-8")
        pre = tailer.capture(path)
        with open(path, "a", encoding="utf-8") as f:
            f.write("naïve ✓\n")
        assert tailer.read_window(path, pre) == "naïve ✓\n"

    def test_split_multibyte_sequence_is_replaced_not_raised(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        path.write_bytes("✓".encode("utf-8"))
        assert set(tailer.read_window(path, 1)) == {"\ufffd"}

    def test_window_reports_sizes(self, tmp_path):
        tailer = _no_wait_tailer()
        path = tmp_path / "h.md"
        path.write_text("abc")
        window = tailer.window(path, 1)
        assert window.pre_size == 1
        assert window.current_size == 3
        assert window.length == 2
        assert not window.is_empty


class TestUnreadableHistory:

    def test_capture_permission_error_is_zero_with_warning(self, tmp_path, caplog):
        path = tmp_path / "h.md"
        path.write_text("x" * 50)
        with caplog.at_level(logging.WARNING, logger="AiderMCP.reconcile.tailer"):
            with patch("aider_mcp.reconcile.tailer.os.path.getsize", side_effect=PermissionError("denied")):
                assert _no_wait_tailer().capture(path) == 0
        assert "Could not read chat history size" in caplog.text

    def test_read_window_on_directory_is_empty_with_warning(self, tmp_path, caplog):
        path = tmp_path / "h.md"
        path.mkdir()
        with caplog.at_level(logging.WARNING, logger="AiderMCP.reconcile.tailer"):
            assert _no_wait_tailer().read_window(path, 0) == ""
        assert "Could not read chat history" in caplog.text

    def test_read_window_permission_error_is_empty(self, tmp_path, caplog):
        path = tmp_path / "h.md"
        path.write_text("<summary>hidden</summary>\n")
        with caplog.at_level(logging.WARNING, logger="AiderMCP.reconcile.tailer"):
            with patch("aider_mcp.reconcile.tailer.open", side_effect=PermissionError("denied"), create=True):
                assert _no_wait_tailer().read_window(path, 0) == ""
        assert "denied" in caplog.text


class TestSettle:

    def test_returns_once_two_samples_agree(self, tmp_path):
        clock = FakeClock()
        path = tmp_path / "h.md"
        path.write_text("done")
        tailer = HistoryTailer(settle_min=0.1, poll_interval=0.05, max_wait=2.0,
                               sleep=clock.sleep, clock=clock)
        tailer.wait_for_settle(path)
        assert clock.sleeps == [0.1, 0.05]

    def test_keeps_polling_while_file_grows(self, tmp_path):
        clock = FakeClock()
        path = tmp_path / "h.md"
        path.write_text("a")
        writes = ["bb", "ccc"]

        def sleep(seconds):
            clock.sleep(seconds)
            if writes:
                with open(path, "a") as f:
                    f.write(writes.pop(0))

        tailer = HistoryTailer(settle_min=0, poll_interval=0.05, max_wait=2.0, sleep=sleep, clock=clock)
        tailer.wait_for_settle(path)
        assert len(clock.sleeps) == 3
        assert path.read_text() == "abbccc"

    def test_gives_up_after_max_wait(self, tmp_path):
        clock = FakeClock()
        path = tmp_path / "h.md"
        path.write_text("")

        def sleep(seconds):
            clock.sleep(seconds)
            with open(path, "a") as f:
                f.write("x")

        tailer = HistoryTailer(settle_min=0, poll_interval=0.5, max_wait=2.0, sleep=sleep, clock=clock)
        tailer.wait_for_settle(path)
        assert clock.now == 2.0

    def test_missing_file_settles_immediately(self, tmp_path):
        clock = FakeClock()
        tailer = HistoryTailer(settle_min=0, poll_interval=0.05, max_wait=2.0,
                               sleep=clock.sleep, clock=clock)
        tailer.wait_for_settle(tmp_path / "missing.md")
        assert clock.sleeps == [0.05]

    def test_from_config_converts_milliseconds(self):
        tailer = HistoryTailer.from_config(
            HistoryConfig(settle_min_ms=250, settle_poll_ms=20, settle_max_ms=1500)
        )
        assert tailer.settle_min == 0.25
        assert tailer.poll_interval == 0.02
        assert tailer.max_wait == 1.5
