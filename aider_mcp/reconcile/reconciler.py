"""
Aider MCP Result Reconciler
===========================
Combines Aider's two unsynchronized output channels into one result.

Aider's stdout may be truncated or interleaved, while its chat history file
is appended on its own timeline. For each invocation the reconciler:

1. Takes the per-history lock so no other invocation grows the same file.
2. Records the history size.
3. Runs Aider (spawn / exit failures propagate to the caller).
4. Waits for the history file to settle.
5. Reads only the bytes appended since step 2 and classifies them.

Exit-code success and semantic success are separate signals: a clean exit
whose window carries an error signature still yields `succeeded=False`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from aider_mcp.core.config import AiderMcpConfig
from aider_mcp.core.types import ExtractionOutcome, InvocationRequest, InvocationResult
from aider_mcp.platform import find_aider_executable
from aider_mcp.reconcile.extractor import classify
from aider_mcp.reconcile.locks import RootLockRegistry
from aider_mcp.reconcile.patterns import DEFAULT_RULES, ExtractionRules, rules_from_config
from aider_mcp.reconcile.runner import ProcessRunner
from aider_mcp.reconcile.tailer import HistoryTailer, resolve_history_path

logger = logging.getLogger("AiderMCP.reconcile.reconciler")

_PREVIEW_CHARS = 200


class ResultReconciler:
    """
    Runs Aider and recovers its outcome from the chat history.

    All collaborators are injectable so tests can replace the runner or the
    tailer's clock without spawning real processes.
    """

    def __init__(
        self,
        executable: str = "aider",
        runner: Optional[ProcessRunner] = None,
        tailer: Optional[HistoryTailer] = None,
        locks: Optional[RootLockRegistry] = None,
        rules: ExtractionRules = DEFAULT_RULES,
        history_filename: str = ".aider.chat.history.md",
        repo_marker: str = ".git",
    ) -> None:
        self.executable = executable
        self._runner = runner or ProcessRunner()
        self._tailer = tailer or HistoryTailer()
        self._locks = locks or RootLockRegistry()
        self._rules = rules
        self.history_filename = history_filename
        self.repo_marker = repo_marker

    @classmethod
    def from_config(cls, config: AiderMcpConfig) -> "ResultReconciler":
        return cls(
            executable=find_aider_executable(config.executable.path, config.executable.candidates),
            runner=ProcessRunner(timeout_seconds=config.executable.timeout_seconds),
            tailer=HistoryTailer.from_config(config.history),
            locks=RootLockRegistry(
                lock_dir=Path(config.data_dir) / "locks",
                timeout=config.history.lock_timeout_seconds,
            ),
            rules=rules_from_config(config.extraction),
            history_filename=config.history.filename,
            repo_marker=config.history.repo_marker,
        )

    def build_request(self, args: Sequence[str], cwd: Path) -> InvocationRequest:
        cwd = Path(cwd).resolve()
        return InvocationRequest(
            executable=self.executable,
            args=list(args),
            cwd=cwd,
            history_path=resolve_history_path(cwd, self.history_filename, self.repo_marker),
        )

    def execute(self, args: Sequence[str], cwd: Path) -> InvocationResult:
        """
        Run one Aider invocation and reconcile its result.

        Raises SpawnError / NonZeroExit / ProcessTimeout from the runner and
        HistoryLockTimeout from the lock; history read problems only degrade
        the window.
        """
        request = self.build_request(args, cwd)
        outcome = self._execute_locked(request)
        return InvocationResult.from_outcome(outcome)

    def _execute_locked(self, request: InvocationRequest) -> ExtractionOutcome:
        with self._locks.hold(request.history_path):
            pre_size = self._tailer.capture(request.history_path)
            logger.debug("Chat history path=%s pre_size=%d", request.history_path, pre_size)

            self._runner.run(request.executable, request.args, request.cwd)

            self._tailer.wait_for_settle(request.history_path)
            window = self._tailer.window(request.history_path, pre_size)
            suffix = self._tailer.read_window(request.history_path, pre_size)

        logger.debug(
            "Chat history window %d..%d (%d bytes); recovered %d chars; preview=%r",
            window.pre_size,
            window.current_size,
            window.length,
            len(suffix),
            suffix[:_PREVIEW_CHARS],
        )
        outcome = classify(suffix, self._rules)
        logger.info(
            "Aider invocation in %s classified as %s%s",
            request.cwd,
            outcome.kind.value,
            f" ({outcome.label})" if outcome.label else "",
        )
        return outcome
