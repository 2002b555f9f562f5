import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "aider_mcp.log"


def configure_logging(
    log_dir: Union[str, Path],
    level: str = "info",
    filename: Optional[str] = None,
) -> Path:
    """
    Route all logging to a file in `log_dir`.

    stdout carries the MCP protocol, so nothing may be logged there.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / (filename or LOG_FILENAME)
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        filename=str(log_file),
        filemode="a",
        force=True,
    )
    return log_file
