"""Session store abstraction and in-memory backend.

The store is the only component that depends on a persistence substrate.
Values are kept as opaque serialized blobs (SessionRecord JSON); a value
that cannot be parsed is discarded on touch and read as absent.

Provides:
1. SessionStore (abstract): the contract every substrate implements
2. MemorySessionStore: process-local dict, for single-process deployments
   and tests

The networked backend lives in redis_store.py. Use create_session_store()
to build the backend selected by configuration.

Atomicity: put_if_absent(), replace() and delete_if() are the conditional
primitives. All identifier-uniqueness, update-existence and removal decisions
in the SessionManager go through them rather than a separate read followed
by a write.
"""

from __future__ import annotations

__all__ = [
    "MemorySessionStore",
    "SessionStore",
    "create_session_store",
]

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import ValidationError

from mcp_pm.exceptions import ConfigurationError
from mcp_pm.sessions.models import Clock, SessionRecord, system_clock
from mcp_pm.telemetry.session_events import log_session_event

if TYPE_CHECKING:
    from mcp_pm.config import StorageConfig


class SessionStore(ABC):
    """Abstract base class for session store backends.

    Keys are opaque session ids. Expired records are never returned by get()
    and are removed as a side effect of reading them. list() returns every
    parseable record, expired ones included; sweeping is the manager's job.

    Attributes:
        clock: Time source (epoch ms) used for expiry checks.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or system_clock

    @abstractmethod
    def get(self, session_id: str) -> SessionRecord | None:
        """Return the live record for session_id, or None.

        Expired or corrupt values are removed and read as None.

        Raises:
            StoreUnavailable: If the substrate cannot be reached.
        """

    @abstractmethod
    def put(self, session_id: str, record: SessionRecord) -> None:
        """Write record under session_id, overwriting unconditionally.

        Raises:
            StoreUnavailable: If the write fails.
        """

    @abstractmethod
    def put_if_absent(self, session_id: str, record: SessionRecord) -> bool:
        """Atomically write record only if no live record exists under session_id.

        An expired or corrupt value does not block the write.

        Returns:
            True if the record was written, False if a live record exists.

        Raises:
            StoreUnavailable: If the write fails.
        """

    @abstractmethod
    def replace(self, session_id: str, record: SessionRecord) -> bool:
        """Atomically overwrite the record only if a live record exists.

        Never creates a record.

        Returns:
            True if the record was replaced, False if none was live.

        Raises:
            StoreUnavailable: If the write fails.
        """

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove session_id.

        Returns:
            True if something was removed.

        Raises:
            StoreUnavailable: If the substrate cannot be reached.
        """

    @abstractmethod
    def delete_if(self, session_id: str, condition: Callable[[SessionRecord], bool]) -> bool:
        """Atomically remove session_id only if its current record satisfies condition.

        The record is re-read at delete time, so a value written after the
        caller last looked is judged on its own merits. Corrupt values never
        match.

        Returns:
            True if a matching record was removed.

        Raises:
            StoreUnavailable: If the substrate cannot be reached.
        """

    @abstractmethod
    def list(self) -> list[tuple[str, SessionRecord]]:
        """Return (session_id, record) pairs for every parseable stored value.

        No ordering guarantee. Corrupt values are removed.

        Raises:
            StoreUnavailable: If the substrate cannot be reached.
        """

    def ping(self) -> bool:
        """Check whether the substrate is reachable."""
        return True

    def _decode(self, session_id: str, raw: str | bytes) -> SessionRecord | None:
        """Parse a stored value, reporting corrupt ones.

        Returns:
            The record, or None if the value cannot be parsed (caller removes it).
        """
        try:
            return SessionRecord.from_json(raw)
        except ValidationError as e:
            log_session_event(
                "session_record_discarded",
                message="Discarded unparseable session record",
                session_id=session_id,
                level=logging.WARNING,
                details={"error_count": e.error_count()},
            )
            return None


class MemorySessionStore(SessionStore):
    """Session store backed by a process-local dict.

    Only suitable when every request is served by the same process. Thread
    safe: a single lock guards every operation, which makes the conditional
    primitives atomic.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    def _live(self, session_id: str) -> SessionRecord | None:
        """Return the live record; evict expired/corrupt values. Caller holds the lock."""
        raw = self._values.get(session_id)
        if raw is None:
            return None

        record = self._decode(session_id, raw)
        if record is None or record.is_expired(self.clock()):
            del self._values[session_id]
            return None

        return record

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._live(session_id)

    def put(self, session_id: str, record: SessionRecord) -> None:
        with self._lock:
            self._values[session_id] = record.to_json()

    def put_if_absent(self, session_id: str, record: SessionRecord) -> bool:
        with self._lock:
            if self._live(session_id) is not None:
                return False
            self._values[session_id] = record.to_json()
            return True

    def replace(self, session_id: str, record: SessionRecord) -> bool:
        with self._lock:
            if self._live(session_id) is None:
                return False
            self._values[session_id] = record.to_json()
            return True

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._values.pop(session_id, None) is not None

    def delete_if(self, session_id: str, condition: Callable[[SessionRecord], bool]) -> bool:
        with self._lock:
            raw = self._values.get(session_id)
            if raw is None:
                return False

            record = self._decode(session_id, raw)
            if record is None or not condition(record):
                return False

            del self._values[session_id]
            return True

    def list(self) -> list[tuple[str, SessionRecord]]:
        with self._lock:
            result: list[tuple[str, SessionRecord]] = []
            for session_id, raw in list(self._values.items()):
                record = self._decode(session_id, raw)
                if record is None:
                    del self._values[session_id]
                    continue
                result.append((session_id, record))
            return result


def create_session_store(config: "StorageConfig", clock: Clock | None = None) -> SessionStore:
    """Create the session store backend selected by configuration.

    Args:
        config: Storage configuration.
        clock: Optional time source (epoch ms), mainly for tests.

    Returns:
        MemorySessionStore or RedisSessionStore.
    """
    if config.backend == "redis":
        # Import here so the memory backend works without redis installed
        from mcp_pm.sessions.redis_store import RedisSessionStore

        if not config.redis_url:
            raise ConfigurationError(
                "Redis session store requires SESSION_STORE_URL",
                missing=["SESSION_STORE_URL"],
            )
        return RedisSessionStore.from_url(
            config.redis_url,
            key_prefix=config.key_prefix,
            clock=clock,
        )

    return MemorySessionStore(clock=clock)
