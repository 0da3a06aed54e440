"""System logger for operational events.

This module provides a singleton system logger for operational events:
session lifecycle transitions, token minting failures, webhook handling,
store faults.

Logging strategy:
- Console (stderr): INFO and above by default (configurable level)
- File (JSONL): optional, enabled via configure_system_logger() when the
  deployment sets a log file

Serverless platforms collect stderr, so console output is the primary sink.
"""

from __future__ import annotations

__all__ = [
    "configure_system_logger",
    "get_system_logger",
]

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from mcp_pm.constants import APP_NAME
from mcp_pm.telemetry.formatters import ConsoleFormatter, JsonLineFormatter

if TYPE_CHECKING:
    from mcp_pm.config import LoggingConfig

# Module-level singleton logger
_system_logger: logging.Logger | None = None


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with a stderr handler only.
    A file handler can be added later via configure_system_logger().

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "token_mint_failed", "message": "..."})
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.DEBUG)
    _system_logger.propagate = False

    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(stderr_handler)

    return _system_logger


def configure_system_logger(config: "LoggingConfig") -> logging.Logger:
    """Apply logging configuration to the system logger.

    Sets the console level and, when config.log_file is set, attaches a JSONL
    file handler at the same level. Calling this again replaces any file
    handler added by a previous call.

    Args:
        config: Logging configuration.

    Returns:
        The configured system logger.
    """
    logger = get_system_logger()
    level = logging.getLevelName(config.log_level)

    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logger.removeHandler(handler)
        else:
            handler.setLevel(level)

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(
                {
                    "event": "log_file_unavailable",
                    "message": f"Cannot create log directory {log_path.parent}: {e}",
                }
            )
            return logger

        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(JsonLineFormatter())
        logger.addHandler(file_handler)

    return logger
