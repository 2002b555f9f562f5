"""
Aider MCP Platform Abstraction
------------------------------
Cross-platform path resolution and executable discovery.

Directory lookups go through platformdirs so the relay keeps its lock files
and logs in the conventional per-user locations on Windows, Linux and macOS.
"""

import os
import sys
import shutil
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional

import platformdirs

logger = logging.getLogger("AiderMCP.Platform")

# ---------------------------------------------------------------------------
# Platform detection
# ---------------------------------------------------------------------------

IS_WINDOWS = sys.platform == "win32"
IS_MACOS = sys.platform == "darwin"
IS_LINUX = sys.platform.startswith("linux")

_APP_NAME = "aider-mcp"
_APP_AUTHOR = "aider-mcp"
_AIDER_BINARY = "aider.exe" if IS_WINDOWS else "aider"


def get_platform_info() -> Dict[str, Any]:
    """Return platform diagnostic information for the doctor command."""
    return {
        "os": sys.platform,
        "python": sys.version.split()[0],
        "data_dir": str(get_data_dir()),
        "config_dir": str(get_config_dir()),
        "log_dir": str(get_log_dir()),
    }


# ---------------------------------------------------------------------------
# Directory resolution
# ---------------------------------------------------------------------------

def _resolve_dir(env_var: str, platformdirs_fn: str) -> Path:
    """
    Resolve a directory path with priority:
    1. Environment variable override
    2. platformdirs convention for the current OS
    """
    env_val = os.environ.get(env_var)
    if env_val:
        return Path(env_val)
    fn = getattr(platformdirs, platformdirs_fn)
    return Path(fn(_APP_NAME, _APP_AUTHOR))


def get_data_dir() -> Path:
    """
    Get the relay data directory (AIDER_MCP_DATA_DIR overrides).

    Contains: locks/
    """
    return _resolve_dir("AIDER_MCP_DATA_DIR", "user_data_dir")


def get_config_dir() -> Path:
    """Get the relay configuration directory (AIDER_MCP_CONFIG_DIR overrides)."""
    return _resolve_dir("AIDER_MCP_CONFIG_DIR", "user_config_dir")


def get_log_dir() -> Path:
    """Get the relay log directory (AIDER_MCP_LOG_DIR overrides)."""
    return _resolve_dir("AIDER_MCP_LOG_DIR", "user_log_dir")


# ---------------------------------------------------------------------------
# Aider detection
# ---------------------------------------------------------------------------

def default_aider_candidates() -> List[str]:
    """
    Ordered list of well-known Aider install locations.

    pipx and `uv tool` both install into ~/.local/bin, which is also where the
    official installer puts the binary, so it is probed first.
    """
    home = Path.home()
    candidates = [home / ".local" / "bin" / _AIDER_BINARY]
    if IS_WINDOWS:
        local_app = os.environ.get("LOCALAPPDATA", "")
        if local_app:
            candidates.append(Path(local_app) / "Programs" / "Python" / "Scripts" / _AIDER_BINARY)
        candidates.append(home / "AppData" / "Roaming" / "Python" / "Scripts" / _AIDER_BINARY)
    elif IS_MACOS:
        candidates.append(Path("/opt/homebrew/bin/aider"))
        candidates.append(Path("/usr/local/bin/aider"))
    else:
        candidates.append(Path("/usr/local/bin/aider"))
        candidates.append(Path("/usr/bin/aider"))
    return [str(c) for c in candidates]


def _is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_aider_executable(
    override: Optional[str] = None,
    candidates: Optional[Iterable[str]] = None,
) -> str:
    """
    Locate the Aider executable.

    Resolution order:
      1. Explicit override (config / AIDER_MCP_EXECUTABLE)
      2. Fixed install locations, in order
      3. The ambient PATH

    Never fails: when nothing is found the bare binary name is returned and
    the spawn itself reports the missing executable.
    """
    if override:
        return str(Path(override).expanduser())

    for candidate in candidates if candidates is not None else default_aider_candidates():
        path = Path(candidate).expanduser()
        if _is_executable_file(path):
            return str(path)

    on_path = shutil.which(_AIDER_BINARY)
    if on_path:
        return on_path

    logger.debug("Aider not found in fallback locations; relying on PATH at spawn time")
    return _AIDER_BINARY


def is_git_repository(directory: Path) -> bool:
    """True when the directory itself holds a .git entry (dir or worktree file)."""
    return (Path(directory) / ".git").exists()
