"""
User-facing result text.

Exactly one of four messages is produced per tool call so a client UI can
tell the outcomes apart at a glance.
"""

from aider_mcp.core.types import InvocationResult

ERROR_PREFIX = "❌ Aider reported an error:"
SUMMARY_PREFIX = "📋 Summary:"
NO_SUMMARY_MESSAGE = "⚠️ Aider completed but no summary was generated"
ROOT_DIR_FORBIDDEN_MESSAGE = (
    "⛔ ERROR: Cannot execute Aider in the root directory for safety reasons. "
    "Please specify a valid project directory."
)


def format_result(result: InvocationResult) -> str:
    if result.error_text:
        return f"{ERROR_PREFIX}\n{result.error_text}"
    if result.summary_text:
        return f"{SUMMARY_PREFIX}\n{result.summary_text}"
    return NO_SUMMARY_MESSAGE


def format_exception(exc: Exception, architect_mode: bool = False) -> str:
    mode = "architect mode" if architect_mode else "CLI"
    return f"Error executing Aider {mode}: {exc}"
