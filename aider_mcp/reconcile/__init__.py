"""
Result reconciliation: run Aider, tail its chat history, classify the outcome.

Public surface area
-------------------
  ResultReconciler  : orchestrates one invocation end to end
  ProcessRunner     : spawns the CLI and buffers its streams
  HistoryTailer     : measures and reads the chat history window
  RootLockRegistry  : one lock per chat history file
  classify          : pure summary / error / none classification
"""

from .extractor import classify
from .locks import RootLockRegistry
from .patterns import DEFAULT_RULES, ErrorPattern, ExtractionRules, build_rules
from .reconciler import ResultReconciler
from .runner import ProcessRunner
from .tailer import HistoryTailer, find_repo_root, resolve_history_path

__all__ = [
    "ResultReconciler",
    "ProcessRunner",
    "HistoryTailer",
    "RootLockRegistry",
    "classify",
    "DEFAULT_RULES",
    "ErrorPattern",
    "ExtractionRules",
    "build_rules",
    "find_repo_root",
    "resolve_history_path",
]
