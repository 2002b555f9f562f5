"""
Aider MCP Marker Extractor
--------------------------
Classifies the text appended to the chat history during one invocation.

A completion marker always wins over an error signature: it means Aider
itself judged the task done. Within either kind the last occurrence wins,
because the history is append-only and later turns supersede earlier ones.
"""

import logging

from aider_mcp.core.types import ExtractionOutcome
from aider_mcp.reconcile.patterns import DEFAULT_RULES, ExtractionRules, collapse_whitespace

logger = logging.getLogger("AiderMCP.reconcile.extractor")


def find_summary(suffix: str, rules: ExtractionRules = DEFAULT_RULES):
    """
    Return the stripped body of the last completion marker, or None.
    An empty last marker counts as no marker.
    """
    last = None
    for match in rules.summary.finditer(suffix):
        last = match
    if last is None:
        return None
    return last.group(1).strip() or None


def find_error(suffix: str, rules: ExtractionRules = DEFAULT_RULES):
    """
    Return (label, text) for the last match of the highest-priority error
    pattern that matches at all, or None.
    """
    for error_pattern in rules.error_patterns:
        matches = list(error_pattern.regex.finditer(suffix))
        if not matches:
            continue
        text = collapse_whitespace(matches[-1].group(0))
        if text:
            return error_pattern.label, text
    return None


def classify(suffix: str, rules: ExtractionRules = DEFAULT_RULES) -> ExtractionOutcome:
    """Pure classification of a history suffix into summary / error / none."""
    if not suffix:
        return ExtractionOutcome.none()

    summary = find_summary(suffix, rules)
    if summary is not None:
        logger.debug("Classified window as summary (%d chars)", len(summary))
        return ExtractionOutcome.summary(summary)

    found = find_error(suffix, rules)
    if found is not None:
        label, text = found
        logger.debug("Classified window as error via pattern '%s'", label)
        return ExtractionOutcome.error(text, label=label)

    return ExtractionOutcome.none()
