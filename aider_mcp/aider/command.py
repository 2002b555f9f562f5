"""
Aider command-line assembly.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from aider_mcp.platform import is_git_repository

SUMMARY_INSTRUCTION = (
    "After completing the task, please summarize the result in a <{tag}></{tag}> tag."
)


def build_prompt(prompt: str, summary_tag: str = "summary") -> str:
    return f"{prompt}\n\n{SUMMARY_INSTRUCTION.format(tag=summary_tag)}"


def build_aider_args(
    prompt: str,
    cwd: Path,
    files: Optional[Sequence[str]] = None,
    model: Optional[str] = None,
    architect_mode: bool = False,
    architect_model: Optional[str] = None,
    editor_model: Optional[str] = None,
    restore_chat_history: bool = False,
    summary_tag: str = "summary",
) -> List[str]:
    """
    Build argv (without the executable) for a non-interactive Aider run.

    --auto-commits is only passed inside a git repository; elsewhere Aider
    would refuse or prompt.
    """
    args = ["--yes", "--no-stream"]

    if architect_mode:
        args.append("--architect")
    if restore_chat_history:
        args.append("--restore-chat-history")
    if is_git_repository(cwd):
        args.append("--auto-commits")

    if architect_mode and architect_model:
        args += ["--model", architect_model]
        if editor_model:
            args += ["--editor-model", editor_model]
    elif model:
        args += ["--model", model]

    for file in files or ():
        args += ["--file", file]

    args += ["--message", build_prompt(prompt, summary_tag)]
    return args
