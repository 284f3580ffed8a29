"""
Centralized Logging Configuration for php-switch.

The provisioning worker thread and the main thread log through the same
loguru logger, so file sinks are enqueued.
"""

import sys
from pathlib import Path

from loguru import logger

from php_switch.config import settings


def setup_logging(level: str | None = None, log_file: Path | None = None) -> None:
    """
    Configure logging for the CLI process.

    Sets up:
    - Console output at the configured level (INFO by default)
    - An optional JSON-lines log file at DEBUG level
    """
    # Remove default handler first
    logger.remove()

    handlers: list[dict[str, object]] = [
        {
            "sink": sys.stderr,
            "level": level or settings.cli_default_log_level,
            "format": "<level>{message}</level>",
        }
    ]

    log_file = log_file or settings.log_file
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            {
                "sink": log_file,
                "level": "DEBUG",
                "serialize": True,
                "enqueue": True,  # Thread-safe
                "backtrace": True,
                "diagnose": True,
            }
        )

    logger.configure(handlers=handlers)  # type: ignore[arg-type]
