"""
Aider MCP Relay: expose the Aider coding assistant as MCP tools, recovering
its full result from the on-disk chat history.
"""

from aider_mcp.core.errors import (
    AiderMcpError,
    ConfigError,
    NonZeroExit,
    ProcessTimeout,
    SpawnError,
)
from aider_mcp.core.types import ExtractionOutcome, InvocationResult, OutcomeKind
from aider_mcp.reconcile.reconciler import ResultReconciler
from aider_mcp.version import __version__

__all__ = [
    "__version__",
    "ResultReconciler",
    "InvocationResult",
    "ExtractionOutcome",
    "OutcomeKind",
    "AiderMcpError",
    "SpawnError",
    "NonZeroExit",
    "ProcessTimeout",
    "ConfigError",
]
