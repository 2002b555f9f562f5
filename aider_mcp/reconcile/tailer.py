"""
Aider MCP History Tailer
------------------------
Measures the Aider chat history before an invocation and reads back only the
bytes appended during it.

Tailing is best-effort: every filesystem failure degrades to an empty window
with a warning and never fails the invocation.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from aider_mcp.core.config import DEFAULT_HISTORY_FILENAME, DEFAULT_REPO_MARKER, HistoryConfig
from aider_mcp.core.types import LogWindow

logger = logging.getLogger("AiderMCP.reconcile.tailer")


def find_repo_root(start: Path, marker: str = DEFAULT_REPO_MARKER) -> Optional[Path]:
    """Nearest ancestor of `start` (inclusive) containing `marker`, or None."""
    current = Path(start).resolve()
    for directory in (current, *current.parents):
        if (directory / marker).exists():
            return directory
    return None


def resolve_history_path(
    cwd: Path,
    filename: str = DEFAULT_HISTORY_FILENAME,
    marker: str = DEFAULT_REPO_MARKER,
) -> Path:
    """Aider writes its history at the repository root, or the cwd outside a repo."""
    cwd = Path(cwd).resolve()
    root = find_repo_root(cwd, marker) or cwd
    return root / filename


def _stat_sample(path: Path) -> Optional[Tuple[int, int]]:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not stat chat history %s: %s", path, exc)
        return None
    return st.st_size, st.st_mtime_ns


class HistoryTailer:
    """
    Captures the log window for one invocation.

    Usage:
        pre_size = tailer.capture(path)
        ... run aider ...
        tailer.wait_for_settle(path)
        suffix = tailer.read_window(path, pre_size)
    """

    def __init__(
        self,
        settle_min: float = 0.1,
        poll_interval: float = 0.05,
        max_wait: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settle_min = settle_min
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_config(cls, config: HistoryConfig) -> "HistoryTailer":
        return cls(
            settle_min=config.settle_min_ms / 1000.0,
            poll_interval=config.settle_poll_ms / 1000.0,
            max_wait=config.settle_max_ms / 1000.0,
        )

    def capture(self, path: Path) -> int:
        """Byte size of the history before the invocation; 0 when absent or unreadable."""
        try:
            return os.path.getsize(path)
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.warning("Could not read chat history size for %s: %s", path, exc)
            return 0

    def wait_for_settle(self, path: Path) -> None:
        """
        Wait for Aider's buffered writes to land.

        Sleeps `settle_min`, then samples (size, mtime) every `poll_interval`
        until two consecutive samples agree or `max_wait` has elapsed. This
        narrows the flush race but cannot close it.
        """
        if self.settle_min > 0:
            self._sleep(self.settle_min)

        deadline = self._clock() + self.max_wait
        previous = _stat_sample(path)
        while self._clock() < deadline:
            self._sleep(self.poll_interval)
            current = _stat_sample(path)
            if current == previous:
                break
            previous = current
        else:
            logger.debug("Chat history %s still changing after %.2fs", path, self.max_wait)

    def read_window(self, path: Path, pre_size: int) -> str:
        """Text appended since `pre_size`; empty if the file is gone, shrank, or unreadable."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return ""
        except OSError as exc:
            logger.warning("Could not read chat history %s: %s", path, exc)
            return ""

        if len(data) < pre_size:
            logger.warning(
                "Chat history %s shrank from %d to %d bytes; treating window as empty",
                path,
                pre_size,
                len(data),
            )
            return ""
        return data[pre_size:].decode("utf-8", errors="replace")

    def window(self, path: Path, pre_size: int) -> LogWindow:
        sample = _stat_sample(path)
        return LogWindow(
            path=path,
            pre_size=pre_size,
            current_size=sample[0] if sample else 0,
        )
