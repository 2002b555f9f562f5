"""
Aider MCP Core Types
--------------------
Pydantic models and enums describing one Aider invocation and its
reconciled outcome.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OutcomeKind(str, Enum):
    SUMMARY = "summary"
    ERROR = "error"
    NONE = "none"


class InvocationRequest(BaseModel):
    """One external-tool invocation: argv, working directory and history file."""
    model_config = ConfigDict(frozen=True)

    executable: str
    args: List[str] = Field(default_factory=list)
    cwd: Path
    history_path: Path


class RawProcessResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


class LogWindow(BaseModel):
    """
    Byte range [pre_size, current_size) of the history file attributable to
    one invocation. A file that shrank (rotated or truncated externally)
    yields an empty window rather than a negative one.
    """
    model_config = ConfigDict(frozen=True)

    path: Path
    pre_size: int = 0
    current_size: int = 0

    @property
    def is_empty(self) -> bool:
        return self.current_size <= self.pre_size

    @property
    def length(self) -> int:
        return max(0, self.current_size - self.pre_size)


class ExtractionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind = OutcomeKind.NONE
    text: Optional[str] = None
    # Name of the error pattern that produced an ERROR outcome
    label: Optional[str] = None

    @classmethod
    def summary(cls, text: str) -> "ExtractionOutcome":
        return cls(kind=OutcomeKind.SUMMARY, text=text)

    @classmethod
    def error(cls, text: str, label: Optional[str] = None) -> "ExtractionOutcome":
        return cls(kind=OutcomeKind.ERROR, text=text, label=label)

    @classmethod
    def none(cls) -> "ExtractionOutcome":
        return cls(kind=OutcomeKind.NONE)


class InvocationResult(BaseModel):
    """Value handed back to tool handlers after reconciliation."""
    model_config = ConfigDict(frozen=True)

    summary_text: Optional[str] = None
    error_text: Optional[str] = None
    succeeded: bool = False

    @classmethod
    def from_outcome(cls, outcome: ExtractionOutcome) -> "InvocationResult":
        summary_text = outcome.text if outcome.kind == OutcomeKind.SUMMARY else None
        error_text = outcome.text if outcome.kind == OutcomeKind.ERROR else None
        return cls(
            summary_text=summary_text,
            error_text=error_text,
            succeeded=summary_text is not None and error_text is None,
        )
