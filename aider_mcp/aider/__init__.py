"""
Aider-specific glue: argv assembly, result formatting and the tool service.
"""

from .command import build_aider_args, build_prompt
from .formatting import format_exception, format_result
from .service import AiderArchitectArgs, AiderExecuteArgs, AiderToolService

__all__ = [
    "build_aider_args",
    "build_prompt",
    "format_result",
    "format_exception",
    "AiderToolService",
    "AiderExecuteArgs",
    "AiderArchitectArgs",
]
