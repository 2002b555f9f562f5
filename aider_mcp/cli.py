"""
Aider MCP CLI: run the stdio server and operational utilities.

Usage:
    aider-mcp [--config PATH] serve
    aider-mcp doctor [--cwd DIR]
    aider-mcp run PROMPT [--cwd DIR] [--file PATH ...] [--model NAME] [--architect]

Commands:
    serve     Run the MCP server on stdin/stdout.
    doctor    Report the resolved Aider executable, its version, the chat
              history file for a directory and where configuration came from.
    run       One-shot invocation that prints the formatted result; exits 1
              when the result is an error.
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

from aider_mcp.aider.service import AiderArchitectArgs, AiderExecuteArgs, AiderToolService
from aider_mcp.core.config import AiderMcpConfig, default_config_path, load_config
from aider_mcp.core.errors import ConfigError
from aider_mcp.logging_setup import configure_logging
from aider_mcp.mcp.server import create_server
from aider_mcp.platform import get_platform_info
from aider_mcp.reconcile.reconciler import ResultReconciler
from aider_mcp.reconcile.tailer import find_repo_root, resolve_history_path
from aider_mcp.version import __version__

logger = logging.getLogger("AiderMCP.cli")

_VERSION_PROBE_TIMEOUT = 30.0


def _config_source(explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    env_path = os.environ.get("AIDER_MCP_CONFIG")
    if env_path:
        return f"{env_path} (AIDER_MCP_CONFIG)"
    default_path = default_config_path()
    if default_path.is_file():
        return str(default_path)
    return "environment"


def _load(args: argparse.Namespace) -> AiderMcpConfig:
    return load_config(args.config)


def _probe_version(executable: str) -> tuple[bool, str]:
    try:
        proc = subprocess.run(
            [executable, "--version"],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=_VERSION_PROBE_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        return False, str(exc)
    output = (proc.stdout or proc.stderr).strip()
    if proc.returncode != 0:
        return False, f"exit code {proc.returncode}: {output}"
    return True, output


def cmd_serve(args: argparse.Namespace) -> int:
    config = _load(args)
    log_file = configure_logging(config.log_dir, config.server.log_level)
    logger.info("Aider MCP %s starting; logging to %s", __version__, log_file)
    server = create_server(config, default_cwd=Path.cwd())
    server.serve()
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    """
    Report whether the relay can run Aider from here.

    Exit codes:
      0 = executable found and answered --version
      1 = executable missing or unusable
    """
    config = _load(args)
    reconciler = ResultReconciler.from_config(config)
    cwd = Path(args.cwd).expanduser().resolve()
    version_ok, version_detail = _probe_version(reconciler.executable)
    repo_root = find_repo_root(cwd, config.history.repo_marker)
    history_path = resolve_history_path(cwd, config.history.filename, config.history.repo_marker)

    print("\nAider MCP Doctor")
    print("=" * 50)
    print(f"Version: {__version__}")
    platform_info = get_platform_info()
    print(f"Platform: {platform_info['os']} (Python {platform_info['python']})")
    print(f"Config source: {_config_source(args.config)}")
    print(f"Aider executable: {reconciler.executable}")
    print(f"Aider --version: {'PASS' if version_ok else 'FAIL'} ({version_detail})")
    print(f"Working directory: {cwd}")
    print(f"Repository root: {repo_root or 'none (using working directory)'}")
    print(f"Chat history file: {history_path} ({'exists' if history_path.exists() else 'missing'})")
    print(f"Invocation timeout: {config.executable.timeout_seconds or 'none'}")
    print(f"Log directory: {config.log_dir}")
    print()
    return 0 if version_ok else 1


def cmd_run(args: argparse.Namespace) -> int:
    config = _load(args)
    configure_logging(config.log_dir, config.server.log_level)
    service = AiderToolService(
        ResultReconciler.from_config(config),
        default_cwd=Path.cwd(),
        models=config.models,
        summary_tag=config.extraction.summary_tag,
    )
    payload = {
        "prompt": args.prompt,
        "workingDir": args.cwd,
        "files": args.file or [],
        "restoreChatHistory": args.restore_chat_history,
    }
    if args.architect:
        result = service.architect(AiderArchitectArgs.model_validate(
            {**payload, "architectModel": args.model, "editorModel": args.editor_model}
        ))
    else:
        result = service.execute(AiderExecuteArgs.model_validate({**payload, "model": args.model}))

    for block in result["content"]:
        print(block["text"])
    return 1 if result.get("isError") else 0


# ─────────────────────────────────────────────────────────────────────────────
# Argument parser
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aider-mcp",
        description="Aider MCP relay: expose Aider as MCP tools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  aider-mcp serve\n"
               "  aider-mcp doctor --cwd ~/src/project\n"
               "  aider-mcp run 'add a --verbose flag' --cwd ~/src/project --file cli.py\n",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="YAML config file (default: AIDER_MCP_CONFIG or the platform config dir).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the MCP server over stdio.")

    doctor = subparsers.add_parser(
        "doctor",
        help="Check that Aider can be found and run.",
        description=(
            "Resolves the Aider executable the server would use, asks it for\n"
            "its version and shows which chat history file a call in --cwd\n"
            "would tail."
        ),
    )
    doctor.add_argument(
        "--cwd",
        type=str,
        default=".",
        metavar="DIR",
        help="Directory to resolve the chat history file for (default: current directory).",
    )

    run = subparsers.add_parser("run", help="Run one Aider prompt and print the result.")
    run.add_argument("prompt", help="Natural-language instruction for Aider.")
    run.add_argument("--cwd", type=str, default=None, metavar="DIR", help="Working directory.")
    run.add_argument(
        "--file",
        action="append",
        default=None,
        metavar="PATH",
        help="File to add to the chat (repeatable).",
    )
    run.add_argument("--model", type=str, default=None, help="Model (architect model with --architect).")
    run.add_argument("--editor-model", type=str, default=None, help="Editor model for --architect.")
    run.add_argument("--architect", action="store_true", default=False, help="Use architect mode.")
    run.add_argument(
        "--restore-chat-history",
        action="store_true",
        default=False,
        help="Let Aider reload the previous conversation.",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "serve":
            return cmd_serve(args)
        if args.command == "doctor":
            return cmd_doctor(args)
        if args.command == "run":
            return cmd_run(args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
