"""
Logging setup for clash triage.

A console sink on stderr and one rotating file sink that keeps the history of
triage runs. Components log through loggers bound to a short name.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

LOG_FILENAME = "clash_triage.log"

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"


def setup_logging(level: str = "INFO", debug: bool = False, log_dir: str | Path | None = None) -> Path:
    """
    Configure loguru sinks for a CLI run.

    Args:
        level: Console log level
        debug: Log DEBUG to both sinks, including full prompts and model output
        log_dir: Directory for the log file (default: current directory)

    Returns:
        Path of the log file
    """
    logger.remove()
    logger.configure(extra={"name": "clash_triage"})

    logger.add(sys.stderr, level="DEBUG" if debug else level, format=_CONSOLE_FORMAT)

    log_path = Path(log_dir or ".") / LOG_FILENAME
    logger.add(
        log_path,
        level="DEBUG" if debug else "INFO",
        format=_FILE_FORMAT,
        rotation="10 MB",
        retention=5,
    )
    return log_path


def get_logger(name: str) -> Any:
    """Return the shared logger bound to a component name."""
    return logger.bind(name=name)
