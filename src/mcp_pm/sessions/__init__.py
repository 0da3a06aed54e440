"""Session storage and lifecycle.

- models: SessionRecord, SessionMetadata, clock helpers
- store: SessionStore contract, in-memory backend, backend factory
- redis_store: Redis backend for multi-instance deployments
- manager: SessionManager (create, validate, update, delete, sweep)
"""

from mcp_pm.sessions.manager import SessionManager
from mcp_pm.sessions.models import Clock, SessionMetadata, SessionRecord, system_clock
from mcp_pm.sessions.store import MemorySessionStore, SessionStore, create_session_store

__all__ = [
    "Clock",
    "MemorySessionStore",
    "SessionManager",
    "SessionMetadata",
    "SessionRecord",
    "SessionStore",
    "create_session_store",
    "system_clock",
]
