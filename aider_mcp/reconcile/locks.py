"""
Aider MCP History Locks
-----------------------
Serializes invocations that share one chat history file.

Two overlapping invocations against the same growing file would see each
other's text in their windows. Each resolved history path gets an
in-process threading.Lock plus a cross-process portalocker advisory lock
kept in the data directory (never inside the user's repository).
"""

import contextlib
import hashlib
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, Optional

import portalocker

from aider_mcp.core.errors import HistoryLockTimeout

logger = logging.getLogger("AiderMCP.reconcile.locks")


def lock_file_for(lock_dir: Path, history_path: Path) -> Path:
    digest = hashlib.sha256(str(Path(history_path).resolve()).encode("utf-8")).hexdigest()[:24]
    return Path(lock_dir) / f"{digest}.lock"


class RootLockRegistry:
    """
    Hands out one lock per resolved history path.

    `lock_dir=None` disables the cross-process file lock and serializes
    within this process only.
    """

    def __init__(self, lock_dir: Optional[Path] = None, timeout: float = 900.0) -> None:
        self.lock_dir = Path(lock_dir) if lock_dir is not None else None
        self.timeout = timeout
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _thread_lock(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextlib.contextmanager
    def hold(self, history_path: Path) -> Iterator[None]:
        key = str(Path(history_path).resolve())
        thread_lock = self._thread_lock(key)
        if not thread_lock.acquire(timeout=self.timeout):
            raise HistoryLockTimeout(f"Timed out waiting for history lock on {key}")
        try:
            if self.lock_dir is None:
                yield
                return
            with self._file_lock(history_path):
                yield
        finally:
            thread_lock.release()

    @contextlib.contextmanager
    def _file_lock(self, history_path: Path) -> Iterator[None]:
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_path = lock_file_for(self.lock_dir, history_path)
        try:
            with portalocker.Lock(
                str(lock_path),
                mode="a",
                timeout=self.timeout,
                flags=portalocker.LOCK_EX | portalocker.LOCK_NB,
                fail_when_locked=False,
            ):
                yield
        except portalocker.exceptions.LockException as e:
            logger.error("Failed to acquire history lock %s after %ss: %s", lock_path, self.timeout, e)
            raise HistoryLockTimeout(f"History lock contention on {history_path}: {e}") from e
