"""Session lifecycle manager.

The manager is the only writer of session records. It is substrate-agnostic:
everything it knows about persistence goes through the SessionStore
interface, so the same code serves the in-memory and Redis backends.

Expiry is enforced without a background thread. Every create, update,
validate and count call sweeps expired records first, which keeps the store
bounded even when nothing runs between requests.

Usage:
    manager = SessionManager(MemorySessionStore())

    session_id = manager.create("gho_...", "octocat")
    record = manager.validate(session_id)
    manager.update(session_id, "gho_new", "octocat", ttl_ms=60_000)
    manager.delete(session_id)
"""

from __future__ import annotations

__all__ = [
    "SessionManager",
]

import logging
import secrets

from mcp_pm.constants import DEFAULT_SESSION_TTL_MS, MAX_SESSION_ID_ATTEMPTS, SESSION_ID_BYTES
from mcp_pm.exceptions import StoreUnavailable
from mcp_pm.sessions.models import Clock, SessionMetadata, SessionRecord
from mcp_pm.sessions.store import SessionStore
from mcp_pm.telemetry.session_events import log_session_event


def _check_ttl(ttl_ms: int) -> None:
    if ttl_ms <= 0:
        raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")


class SessionManager:
    """Create, validate, update and expire sessions on a SessionStore.

    Identifier uniqueness and update existence are decided by the store's
    atomic put_if_absent()/replace(), never by a separate read and write.

    Args:
        store: Session store backend.
        clock: Time source (epoch ms). Defaults to the store's clock so both
            evaluate expiry against the same time.
    """

    def __init__(self, store: SessionStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock: Clock = clock or store.clock

    @property
    def store(self) -> SessionStore:
        """The underlying session store."""
        return self._store

    def now(self) -> int:
        """Current time in epoch milliseconds."""
        return self._clock()

    def generate_id(self) -> str:
        """Generate an unguessable session id (256 bits of entropy)."""
        return secrets.token_urlsafe(SESSION_ID_BYTES)

    def _build_record(
        self,
        session_id: str,
        access_token: str,
        username: str,
        ttl_ms: int,
        metadata: SessionMetadata | None,
        installation_id: str | None,
    ) -> SessionRecord:
        now = self.now()
        metadata = metadata or SessionMetadata()
        return SessionRecord(
            session_id=session_id,
            access_token=access_token,
            username=username,
            created_at=now,
            expires_at=now + ttl_ms,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
            installation_id=installation_id,
        )

    def create(
        self,
        access_token: str,
        username: str,
        ttl_ms: int = DEFAULT_SESSION_TTL_MS,
        metadata: SessionMetadata | None = None,
        installation_id: str | None = None,
    ) -> str:
        """Create a session under a freshly generated id.

        Args:
            access_token: OAuth or installation bearer token.
            username: GitHub login.
            ttl_ms: Lifetime in milliseconds.
            metadata: Optional provenance metadata.
            installation_id: Installation the session belongs to, if any.

        Returns:
            The new session id.

        Raises:
            ValueError: If ttl_ms is not positive.
            StoreUnavailable: If the store write fails.
        """
        _check_ttl(ttl_ms)
        self.sweep()

        for _ in range(MAX_SESSION_ID_ATTEMPTS):
            session_id = self.generate_id()
            record = self._build_record(session_id, access_token, username, ttl_ms, metadata, installation_id)
            if self._store.put_if_absent(session_id, record):
                log_session_event(
                    "session_created",
                    message=f"Session created for {username}",
                    session_id=session_id,
                    username=username,
                    installation_id=installation_id,
                    expires_at=record.expires_at,
                )
                return session_id

        raise StoreUnavailable(
            f"Could not allocate a unique session id after {MAX_SESSION_ID_ATTEMPTS} attempts",
            operation="create",
        )

    def create_with_id(
        self,
        session_id: str,
        access_token: str,
        username: str,
        ttl_ms: int = DEFAULT_SESSION_TTL_MS,
        metadata: SessionMetadata | None = None,
        installation_id: str | None = None,
    ) -> bool:
        """Create a session under a caller-supplied id.

        Used by OAuth flows that pre-issue an id and correlate it with the
        session once the callback completes.

        Returns:
            True if the session was written, False if a live session already
            holds the id (nothing is overwritten).

        Raises:
            ValueError: If ttl_ms is not positive.
            StoreUnavailable: If the store write fails.
        """
        _check_ttl(ttl_ms)
        self.sweep()

        record = self._build_record(session_id, access_token, username, ttl_ms, metadata, installation_id)
        if not self._store.put_if_absent(session_id, record):
            log_session_event(
                "session_create_rejected",
                message="Session id already in use",
                session_id=session_id,
                level=logging.WARNING,
            )
            return False

        log_session_event(
            "session_created",
            message=f"Session created for {username}",
            session_id=session_id,
            username=username,
            installation_id=installation_id,
            expires_at=record.expires_at,
        )
        return True

    def validate(self, session_id: str) -> SessionRecord | None:
        """Return the live session for session_id, or None."""
        self.sweep()
        return self._store.get(session_id)

    def update(
        self,
        session_id: str,
        access_token: str,
        username: str,
        ttl_ms: int | None = None,
    ) -> bool:
        """Replace token and username of a live session.

        Not an upsert: a missing or expired session is left absent.
        created_at is preserved. expires_at is recomputed from now only when
        ttl_ms is given.

        Returns:
            True if the session was updated, False if no live session exists.

        Raises:
            ValueError: If ttl_ms is given and not positive.
            StoreUnavailable: If the store write fails.
        """
        if ttl_ms is not None:
            _check_ttl(ttl_ms)
        self.sweep()

        current = self._store.get(session_id)
        if current is not None:
            changes: dict[str, object] = {"access_token": access_token, "username": username}
            if ttl_ms is not None:
                changes["expires_at"] = self.now() + ttl_ms
            updated = SessionRecord.model_validate({**current.model_dump(), **changes})

            if self._store.replace(session_id, updated):
                log_session_event(
                    "session_updated",
                    message=f"Session updated for {username}",
                    session_id=session_id,
                    username=username,
                    installation_id=updated.installation_id,
                    expires_at=updated.expires_at,
                )
                return True

        log_session_event(
            "session_update_missed",
            message="No live session to update",
            session_id=session_id,
            level=logging.DEBUG,
        )
        return False

    def delete(self, session_id: str) -> bool:
        """Remove a session.

        Returns:
            True if a record was removed.
        """
        removed = self._store.delete(session_id)
        if removed:
            log_session_event("session_deleted", message="Session deleted", session_id=session_id)
        return removed

    def sweep(self) -> int:
        """Remove every expired record.

        Idempotent and safe to run concurrently with itself and with writers:
        expiry is re-checked by the store at delete time, so a record
        re-created live under the same id after list() is left alone.

        Returns:
            Number of records removed.
        """
        now = self.now()
        removed = 0
        for session_id, record in self._store.list():
            if record.is_expired(now) and self._store.delete_if(session_id, lambda r: r.is_expired(now)):
                removed += 1

        if removed:
            log_session_event(
                "sessions_swept",
                message=f"Removed {removed} expired session(s)",
                removed=removed,
                level=logging.DEBUG,
            )
        return removed

    def list_sessions(self) -> list[SessionRecord]:
        """Sweep, then return all live sessions (no ordering guarantee)."""
        self.sweep()
        now = self.now()
        return [record for _, record in self._store.list() if not record.is_expired(now)]

    def count(self) -> int:
        """Sweep, then count live sessions. Diagnostic only."""
        return len(self.list_sessions())

    def delete_for_installation(self, installation_id: str) -> int:
        """Remove every session created for an installation.

        Called when the App is uninstalled.

        Returns:
            Number of sessions removed.
        """
        removed = 0
        for session_id, record in self._store.list():
            if record.installation_id == installation_id and self._store.delete_if(
                session_id, lambda r: r.installation_id == installation_id
            ):
                removed += 1

        log_session_event(
            "installation_sessions_deleted",
            message=f"Removed {removed} session(s) for installation {installation_id}",
            installation_id=installation_id,
            removed=removed,
        )
        return removed
