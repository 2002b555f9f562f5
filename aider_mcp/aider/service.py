"""
Aider tool implementations behind the MCP tools/call surface.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from aider_mcp.aider.command import build_aider_args
from aider_mcp.aider.formatting import ROOT_DIR_FORBIDDEN_MESSAGE, format_exception, format_result
from aider_mcp.core.config import ModelDefaults
from aider_mcp.core.errors import AiderMcpError
from aider_mcp.reconcile.reconciler import ResultReconciler

logger = logging.getLogger("AiderMCP.aider.service")


class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prompt: str = Field(min_length=1)
    working_dir: Optional[str] = Field(default=None, alias="workingDir")
    files: List[str] = Field(default_factory=list)
    restore_chat_history: bool = Field(default=False, alias="restoreChatHistory")


class AiderExecuteArgs(_ToolArgs):
    model: Optional[str] = None


class AiderArchitectArgs(_ToolArgs):
    architect_model: Optional[str] = Field(default=None, alias="architectModel")
    editor_model: Optional[str] = Field(default=None, alias="editorModel")


def _text_result(
    text: str,
    is_error: bool = False,
    error: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    if error is not None:
        result["error"] = error
    return result


class AiderToolService:
    """
    Shared flow for aider_execute and aider_architect.

    `default_cwd` is captured once when the server starts and used only when
    a call does not name a working directory.
    """

    def __init__(
        self,
        reconciler: ResultReconciler,
        default_cwd: Path,
        models: Optional[ModelDefaults] = None,
        summary_tag: str = "summary",
    ) -> None:
        self.reconciler = reconciler
        self.default_cwd = Path(default_cwd)
        self.models = models or ModelDefaults()
        self.summary_tag = summary_tag

    def execute(self, args: AiderExecuteArgs) -> Dict[str, Any]:
        return self._run(
            args,
            model=args.model or self.models.model,
            architect_mode=False,
        )

    def architect(self, args: AiderArchitectArgs) -> Dict[str, Any]:
        return self._run(
            args,
            architect_mode=True,
            architect_model=args.architect_model or self.models.architect_model,
            editor_model=args.editor_model,
        )

    def _run(
        self,
        args: _ToolArgs,
        architect_mode: bool,
        model: Optional[str] = None,
        architect_model: Optional[str] = None,
        editor_model: Optional[str] = None,
    ) -> Dict[str, Any]:
        target_dir = Path(args.working_dir).expanduser() if args.working_dir else self.default_cwd
        try:
            resolved = target_dir.resolve()
            if resolved == Path(resolved.anchor):
                logger.warning("Refusing to run Aider in filesystem root %s", target_dir)
                return _text_result(
                    ROOT_DIR_FORBIDDEN_MESSAGE,
                    is_error=True,
                    error={
                        "code": "ROOT_DIR_FORBIDDEN",
                        "message": "Cannot execute Aider in the root directory",
                    },
                )

            argv = build_aider_args(
                args.prompt,
                target_dir,
                files=args.files,
                model=model,
                architect_mode=architect_mode,
                architect_model=architect_model,
                editor_model=editor_model,
                restore_chat_history=args.restore_chat_history,
                summary_tag=self.summary_tag,
            )
            result = self.reconciler.execute(argv, target_dir)
        except (AiderMcpError, OSError) as exc:
            logger.warning("Aider invocation failed in %s: %s", target_dir, exc)
            return _text_result(format_exception(exc, architect_mode), is_error=True)
        except Exception as exc:
            logger.exception("Unexpected failure running Aider in %s", target_dir)
            return _text_result(format_exception(exc, architect_mode), is_error=True)

        return _text_result(format_result(result), is_error=result.error_text is not None)
