"""
Aider MCP Configuration
-----------------------
Centralized configuration for the relay.
Loads from environment variables and, optionally, a YAML config file.
"""

import os
import re
import logging
from pathlib import Path
from typing import Optional, List

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from aider_mcp.core.errors import ConfigError
from aider_mcp.platform import default_aider_candidates, get_config_dir, get_data_dir, get_log_dir

logger = logging.getLogger("AiderMCP.Config")

DEFAULT_HISTORY_FILENAME = ".aider.chat.history.md"
DEFAULT_REPO_MARKER = ".git"
DEFAULT_SUMMARY_TAG = "summary"
DEFAULT_MODEL = "deepseek"
DEFAULT_ARCHITECT_MODEL = "deepseek/deepseek-reasoner"


def _parse_optional_float_env(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
        if value <= 0:
            raise ValueError
        return value
    except ValueError:
        logger.warning(
            "Invalid %s value '%s'; expected positive float. Ignoring.",
            name,
            raw,
        )
        return None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s value '%s'; expected integer. Using %d.", name, raw, default)
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


class ExecutableConfig(BaseModel):
    """Where to find Aider and how long to let it run."""
    path: Optional[str] = None
    candidates: List[str] = Field(default_factory=default_aider_candidates)
    # None disables the timeout; Aider runs to completion
    timeout_seconds: Optional[float] = None


class HistoryConfig(BaseModel):
    """Chat history tailing configuration."""
    filename: str = DEFAULT_HISTORY_FILENAME
    repo_marker: str = DEFAULT_REPO_MARKER
    settle_min_ms: int = Field(default=100, ge=0)
    settle_poll_ms: int = Field(default=50, ge=1)
    settle_max_ms: int = Field(default=2000, ge=0)
    lock_timeout_seconds: float = Field(default=900.0, gt=0)


class ErrorPatternConfig(BaseModel):
    """A user-supplied error dialect, appended after the built-in patterns."""
    label: str
    pattern: str
    ignore_case: bool = False

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid regex {v!r}: {exc}") from exc
        return v


class ExtractionConfig(BaseModel):
    """Marker extraction configuration."""
    summary_tag: str = DEFAULT_SUMMARY_TAG
    extra_error_patterns: List[ErrorPatternConfig] = Field(default_factory=list)

    @field_validator("summary_tag")
    @classmethod
    def tag_is_identifier(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z][\w-]*", v):
            raise ValueError(f"summary tag must be a bare tag name, got {v!r}")
        return v


class ModelDefaults(BaseModel):
    """Default Aider models used when a tool call does not name one."""
    model: str = DEFAULT_MODEL
    architect_model: str = DEFAULT_ARCHITECT_MODEL


class ServerConfig(BaseModel):
    """MCP stdio server configuration."""
    max_workers: int = Field(default=8, ge=1)
    queue_limit: int = Field(default=64, ge=1)
    response_max_chars: int = Field(default=32768, ge=256)
    background_tool_calls: bool = True
    log_level: str = "info"


class AiderMcpConfig(BaseModel):
    """Root configuration for the relay."""
    executable: ExecutableConfig = Field(default_factory=ExecutableConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    models: ModelDefaults = Field(default_factory=ModelDefaults)
    server: ServerConfig = Field(default_factory=ServerConfig)
    data_dir: str = Field(default_factory=lambda: str(get_data_dir()))
    log_dir: str = Field(default_factory=lambda: str(get_log_dir()))

    @classmethod
    def from_env(cls) -> "AiderMcpConfig":
        """
        Load configuration from environment variables.

        Environment variables override defaults:
        - AIDER_MCP_EXECUTABLE: Explicit path to the aider binary
        - AIDER_MCP_TIMEOUT_SEC: Optional per-invocation timeout
        - AIDER_MCP_HISTORY_FILENAME: Chat history file name
        - AIDER_MCP_SETTLE_MIN_MS / _POLL_MS / _MAX_MS: History settle loop
        - AIDER_MCP_LOCK_TIMEOUT_SEC: Max wait for the per-repository lock
        - AIDER_MCP_DEFAULT_MODEL / AIDER_MCP_ARCHITECT_MODEL: Model defaults
        - AIDER_MCP_DISPATCH_MAX_WORKERS / AIDER_MCP_DISPATCH_QUEUE_LIMIT
        - AIDER_MCP_TOOL_RESPONSE_MAX_CHARS
        - AIDER_MCP_BACKGROUND_TOOLS_CALL
        - AIDER_MCP_LOG_LEVEL
        """
        max_workers = max(1, _env_int("AIDER_MCP_DISPATCH_MAX_WORKERS", 8))
        return cls(
            executable=ExecutableConfig(
                path=os.environ.get("AIDER_MCP_EXECUTABLE") or None,
                timeout_seconds=_parse_optional_float_env("AIDER_MCP_TIMEOUT_SEC"),
            ),
            history=HistoryConfig(
                filename=os.environ.get("AIDER_MCP_HISTORY_FILENAME", DEFAULT_HISTORY_FILENAME),
                settle_min_ms=max(0, _env_int("AIDER_MCP_SETTLE_MIN_MS", 100)),
                settle_poll_ms=max(1, _env_int("AIDER_MCP_SETTLE_POLL_MS", 50)),
                settle_max_ms=max(0, _env_int("AIDER_MCP_SETTLE_MAX_MS", 2000)),
                lock_timeout_seconds=_parse_optional_float_env("AIDER_MCP_LOCK_TIMEOUT_SEC") or 900.0,
            ),
            models=ModelDefaults(
                model=os.environ.get("AIDER_MCP_DEFAULT_MODEL", DEFAULT_MODEL),
                architect_model=os.environ.get("AIDER_MCP_ARCHITECT_MODEL", DEFAULT_ARCHITECT_MODEL),
            ),
            server=ServerConfig(
                max_workers=max_workers,
                queue_limit=max(max_workers, _env_int("AIDER_MCP_DISPATCH_QUEUE_LIMIT", max_workers * 8)),
                response_max_chars=max(256, _env_int("AIDER_MCP_TOOL_RESPONSE_MAX_CHARS", 32768)),
                background_tool_calls=_env_flag("AIDER_MCP_BACKGROUND_TOOLS_CALL", True),
                log_level=os.environ.get("AIDER_MCP_LOG_LEVEL", "info"),
            ),
            data_dir=str(get_data_dir()),
            log_dir=str(get_log_dir()),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "AiderMcpConfig":
        """Load configuration from a YAML file, falling back to env on a missing file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Config file not found: %s; using environment", path)
            return cls.from_env()
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping at top level")
        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def default_config_path() -> Path:
    return get_config_dir() / "config.yaml"


def load_config(path: Optional[str] = None) -> AiderMcpConfig:
    """
    Resolve the active configuration.

    Resolution order:
      1. Explicit path argument
      2. AIDER_MCP_CONFIG environment variable
      3. <config dir>/config.yaml when it exists
      4. Environment variables only
    """
    candidate = path or os.environ.get("AIDER_MCP_CONFIG")
    if candidate:
        return AiderMcpConfig.from_yaml(candidate)
    default_path = default_config_path()
    if default_path.is_file():
        return AiderMcpConfig.from_yaml(str(default_path))
    return AiderMcpConfig.from_env()
