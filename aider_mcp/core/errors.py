"""
Aider MCP exceptions.
"""

from __future__ import annotations

from typing import Optional


class AiderMcpError(RuntimeError):
    """Base class for relay errors surfaced to tool callers."""


class SpawnError(AiderMcpError):
    """Raised when the Aider executable could not be started at all."""

    def __init__(self, detail: str, *, executable: Optional[str] = None) -> None:
        self.executable = executable
        self.detail = detail
        super().__init__(f"Failed to spawn Aider CLI: {detail}")


class NonZeroExit(AiderMcpError):
    """Raised when Aider ran but exited with a nonzero status."""

    def __init__(self, exit_code: int, stderr: str) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Aider CLI exited with code {exit_code}: {stderr}")


class ProcessTimeout(AiderMcpError):
    """Raised when an optional invocation timeout is configured and exceeded."""

    def __init__(self, timeout_seconds: float, stderr: str = "") -> None:
        self.timeout_seconds = timeout_seconds
        self.stderr = stderr
        super().__init__(f"Aider CLI timed out after {timeout_seconds:g}s")


class ConfigError(AiderMcpError):
    """Raised when configuration cannot be loaded or compiled."""


class HistoryLockTimeout(AiderMcpError):
    """Raised when another invocation holds the chat history lock for too long."""
