"""Log formatters for console and JSONL output.

Log calls pass structured dicts as the message:
    logger.warning({"event": "token_mint_failed", "message": "...", "installation_id": "42"})

- ConsoleFormatter renders the human-readable part for stderr.
- JsonLineFormatter renders one JSON object per line with an ISO 8601 UTC
  timestamp first, for files and log shippers.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "JsonLineFormatter",
]

import json
import logging
from datetime import datetime, timezone
from typing import Any


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


class JsonLineFormatter(logging.Formatter):
    """Formatter producing JSONL entries with ISO 8601 timestamps (UTC).

    Format of the timestamp: YYYY-MM-DDTHH:MM:SS.sssZ
    Example entry:
        {"time": "2025-12-04T10:48:37.123Z", "level": "INFO", "event": "session_created", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line.

        Args:
            record: The log record to format.

        Returns:
            str: JSON-encoded log entry.
        """
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        log_data: dict[str, Any]
        if isinstance(record.msg, dict):
            log_data = dict(record.msg)
        else:
            log_data = {"message": record.getMessage()}

        if record.exc_info and "error_type" not in log_data:
            exc_type = record.exc_info[0]
            if exc_type is not None:
                log_data["error_type"] = exc_type.__name__

        entry = {"time": timestamp, "level": record.levelname, "logger": record.name, **log_data}
        return json.dumps(entry, default=str)
