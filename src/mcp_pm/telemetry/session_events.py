"""Structured logging for session lifecycle transitions.

Every create/update/delete/sweep performed by the SessionManager is emitted
as a SessionEvent on the system logger. Session ids are bearer secrets, so
they are hashed before logging; access tokens are never logged.

Note: 'time' is not part of the model; JsonLineFormatter adds the timestamp
during serialization so there is a single source of truth for it.
"""

from __future__ import annotations

__all__ = [
    "SessionEvent",
    "hash_sensitive_id",
    "log_session_event",
]

import hashlib
import logging
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

from mcp_pm.telemetry.system_logger import get_system_logger

SessionEventName = Literal[
    "session_created",
    "session_create_rejected",
    "session_updated",
    "session_update_missed",
    "session_deleted",
    "sessions_swept",
    "session_record_discarded",
    "installation_sessions_deleted",
]


class SessionEvent(BaseModel):
    """One session lifecycle log entry.

    Attributes:
        event: Machine-friendly event name.
        message: Human-readable description.
        session_id: Hashed session id ("sha256:<prefix>"), if tied to one session.
        username: GitHub login, if known.
        installation_id: Installation the session belongs to, if any.
        expires_at: Absolute expiry (ms epoch) after the transition.
        removed: Number of records removed (sweeps, bulk deletes).
        details: Additional structured details.
    """

    event: SessionEventName
    message: Optional[str] = None

    session_id: Optional[str] = None
    username: Optional[str] = None
    installation_id: Optional[str] = None
    expires_at: Optional[int] = None
    removed: Optional[int] = None

    details: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


def hash_sensitive_id(value: str, prefix_length: int = 8) -> str:
    """Hash a sensitive id for logging while keeping it correlatable.

    The hash is deterministic, so the same session id always produces the
    same output across log lines.

    Args:
        value: The sensitive id (e.g., a session id).
        prefix_length: Number of hex characters to keep.

    Returns:
        str: "sha256:<prefix>" (e.g., "sha256:a1b2c3d4").
    """
    if not value:
        return "sha256:empty"

    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return f"sha256:{digest[:prefix_length]}"


def log_session_event(
    event: SessionEventName,
    *,
    message: str | None = None,
    session_id: str | None = None,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emit a session lifecycle event on the system logger.

    Args:
        event: Event name.
        message: Human-readable description.
        session_id: Raw session id (hashed before logging).
        level: Logging level for the entry.
        **fields: Other SessionEvent fields (username, installation_id, ...).
    """
    model = SessionEvent(
        event=event,
        message=message,
        session_id=hash_sensitive_id(session_id) if session_id else None,
        **fields,
    )
    get_system_logger().log(level, model.model_dump(exclude_none=True))
