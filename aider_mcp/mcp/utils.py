import logging
from typing import List, Optional

logger = logging.getLogger("AiderMCP.mcp.utils")


def truncate_tool_text(text: str, name: str, max_chars: int) -> str:
    """Apply the response length limit to tool output."""
    if len(text) > max_chars:
        logger.info("Truncating response for tool '%s' (%d -> %d chars)", name, len(text), max_chars)
        suffix = "\n\n[Response truncated due to size limits]"
        cutoff = max(0, max_chars - len(suffix))
        return text[:cutoff] + suffix
    return text


def build_initialize_instructions(startup_warnings: Optional[List[str]] = None) -> str:
    """Build a set of instructions for the client during initialization."""
    base_instructions = (
        "Aider MCP server. Use aider_execute for focused coding tasks and aider_architect "
        "for multi-file changes. Pass workingDir as an absolute project path; results "
        "report Aider's own summary of the work."
    )
    if not startup_warnings:
        return base_instructions
    bullet_list = "\n".join(f"- {warning}" for warning in startup_warnings)
    return f"{base_instructions}\n\nStartup checks:\n{bullet_list}"
