"""
Aider MCP Process Runner
------------------------
Spawns the Aider CLI once, buffers its stdout/stderr, and reports the
terminal status.

Single attempt only: a partially completed run may already have edited or
committed files, so a failed invocation is reported, never retried.

Platform note:
  On Windows the child is created with CREATE_NO_WINDOW so no console
  window flashes up under a GUI MCP host.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Optional, Sequence

from aider_mcp.core.errors import NonZeroExit, ProcessTimeout, SpawnError
from aider_mcp.core.types import RawProcessResult
from aider_mcp.platform import IS_WINDOWS

logger = logging.getLogger("AiderMCP.reconcile.runner")


def _get_subprocess_kwargs() -> dict:
    """Platform-specific Popen kwargs."""
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {}


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """
    Runs one child process to completion.

    `timeout_seconds=None` (the default) lets the child run as long as it
    needs; there is no mid-flight cancellation.
    """

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self.timeout_seconds = timeout_seconds

    def run(self, executable: str, args: Sequence[str], cwd: Path) -> RawProcessResult:
        command = [executable, *args]
        t_start = time.monotonic()

        logger.debug(
            "Spawning process: command=%s argc=%d cwd=%s timeout=%s",
            executable,
            len(args),
            cwd,
            self.timeout_seconds,
        )

        try:
            proc = subprocess.Popen(
                command,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=False,
                **_get_subprocess_kwargs(),
            )
        except OSError as exc:
            logger.warning("Failed to spawn %s: %s", executable, exc)
            raise SpawnError(str(exc), executable=executable) from exc

        try:
            stdout_bytes, stderr_bytes = proc.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            proc.kill()
            _, stderr_bytes = proc.communicate()
            logger.warning("%s timed out after %ss", executable, self.timeout_seconds)
            raise ProcessTimeout(self.timeout_seconds, _decode(stderr_bytes))

        stdout = _decode(stdout_bytes)
        stderr = _decode(stderr_bytes)
        latency_ms = int((time.monotonic() - t_start) * 1000)

        if proc.returncode != 0:
            logger.warning(
                "%s exit=%d after %dms stderr=%s",
                executable,
                proc.returncode,
                latency_ms,
                stderr[:200],
            )
            raise NonZeroExit(proc.returncode, stderr)

        logger.debug(
            "%s exit=0 after %dms stdout=%d chars stderr=%d chars",
            executable,
            latency_ms,
            len(stdout),
            len(stderr),
        )
        return RawProcessResult(stdout=stdout, stderr=stderr, exit_code=0)
