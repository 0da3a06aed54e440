"""Operational logging for mcp-pm.

- formatters: Console and JSONL formatters for dict-message logging
- system_logger: Singleton system logger and its configuration
- session_events: Structured session lifecycle events
"""

from mcp_pm.telemetry.session_events import SessionEvent, hash_sensitive_id, log_session_event
from mcp_pm.telemetry.system_logger import configure_system_logger, get_system_logger

__all__ = [
    "SessionEvent",
    "configure_system_logger",
    "get_system_logger",
    "hash_sensitive_id",
    "log_session_event",
]
