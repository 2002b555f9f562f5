"""
Aider MCP Extraction Patterns
-----------------------------
Precompiled regexes for the completion marker and the error dialects Aider
(and the litellm layer underneath it) write into the chat history.

Error patterns are an ordered list: earlier entries take priority.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern, Tuple

from aider_mcp.core.config import DEFAULT_SUMMARY_TAG, ErrorPatternConfig, ExtractionConfig

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class ErrorPattern:
    label: str
    regex: Pattern[str]

    @classmethod
    def compile(cls, label: str, pattern: str, flags: int = 0) -> "ErrorPattern":
        return cls(label=label, regex=re.compile(pattern, flags))


DEFAULT_ERROR_PATTERNS: Tuple[ErrorPattern, ...] = (
    # litellm.RateLimitError: ..., litellm.exceptions.BadRequestError: ...
    ErrorPattern.compile(
        "vendor_exception",
        r"\blitellm\.[A-Za-z_][\w.]*:[^\n]*",
    ),
    ErrorPattern.compile(
        "exception",
        r"\b[A-Za-z_]\w*Exception:[^\n]*",
    ),
    ErrorPattern.compile(
        "error",
        r"\b[A-Za-z_]\w*Error:[^\n]*",
    ),
    # Header, indented frame lines, then the final exception line
    ErrorPattern.compile(
        "traceback",
        r"Traceback \(most recent call last\):[ \t]*\n(?:[ \t]+[^\n]*\n)*[^\n]*",
    ),
    ErrorPattern.compile(
        "http_status",
        r"\b(?:HTTP(?:/\d(?:\.\d)?)?|status(?:[ _]code)?|error[ _]code)\s*[:=]?\s*[45]\d{2}\b[^\n]*",
        re.IGNORECASE,
    ),
)


def summary_pattern(tag: str = DEFAULT_SUMMARY_TAG) -> Pattern[str]:
    """
    Completion marker regex. The opening tag must directly follow a newline;
    the body may span lines and is captured without surrounding whitespace.
    """
    escaped = re.escape(tag)
    return re.compile(rf"(?<=\n)<{escaped}>\s*(.*?)\s*</{escaped}>", re.DOTALL)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RUN.sub(" ", text).strip()


@dataclass(frozen=True)
class ExtractionRules:
    summary: Pattern[str]
    error_patterns: Tuple[ErrorPattern, ...]


def build_rules(
    summary_tag: str = DEFAULT_SUMMARY_TAG,
    extra_patterns: Optional[Iterable[ErrorPatternConfig]] = None,
) -> ExtractionRules:
    """Compile the rule set; configured patterns rank below the built-ins."""
    extras = tuple(
        ErrorPattern.compile(
            p.label,
            p.pattern,
            re.IGNORECASE if p.ignore_case else 0,
        )
        for p in (extra_patterns or ())
    )
    return ExtractionRules(
        summary=summary_pattern(summary_tag),
        error_patterns=DEFAULT_ERROR_PATTERNS + extras,
    )


def rules_from_config(config: ExtractionConfig) -> ExtractionRules:
    return build_rules(config.summary_tag, config.extra_error_patterns)


DEFAULT_RULES = build_rules()
