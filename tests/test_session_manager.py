"""Unit tests for SessionManager lifecycle semantics."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeClock
from mcp_pm.exceptions import StoreUnavailable
from mcp_pm.sessions.manager import SessionManager
from mcp_pm.sessions.models import SessionMetadata, SessionRecord
from mcp_pm.sessions.store import MemorySessionStore, SessionStore


class _RewritingStore(MemorySessionStore):
    """Memory store that rewrites one id right after the next armed list() call.

    Simulates a writer landing between a sweep's read and its delete.
    """

    def __init__(self, clock: FakeClock, session_id: str, **fields) -> None:
        super().__init__(clock)
        self.rewrite_id = session_id
        self.rewrite_fields = fields
        self.armed = False

    def list(self) -> list[tuple[str, SessionRecord]]:
        result = super().list()
        if not self.armed:
            return result

        self.armed = False
        now = self.clock()
        self.put(
            self.rewrite_id,
            SessionRecord(
                session_id=self.rewrite_id,
                access_token="gho_fresh",
                username="fresh",
                created_at=now,
                expires_at=now + 60_000,
                **self.rewrite_fields,
            ),
        )
        return result


class TestCreate:
    """Tests for create()."""

    def test_returns_fresh_unique_ids(self, manager: SessionManager) -> None:
        """Given repeated creates, every id is distinct and resolvable."""
        ids = {manager.create("gho_token", "octocat") for _ in range(20)}

        assert len(ids) == 20
        assert all(manager.validate(sid) is not None for sid in ids)

    def test_record_fields(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given token, username, ttl and metadata, the record carries them."""
        metadata = SessionMetadata(ip_address="10.0.0.1", user_agent="pytest")

        session_id = manager.create("gho_token", "octocat", ttl_ms=5000, metadata=metadata, installation_id="42")
        record = manager.validate(session_id)

        assert record.access_token == "gho_token"
        assert record.username == "octocat"
        assert record.created_at == clock()
        assert record.expires_at == clock() + 5000
        assert record.ip_address == "10.0.0.1"
        assert record.user_agent == "pytest"
        assert record.installation_id == "42"

    @pytest.mark.parametrize("ttl_ms", [0, -1])
    def test_rejects_non_positive_ttl(self, manager: SessionManager, ttl_ms: int) -> None:
        """Given ttl <= 0, raises ValueError."""
        with pytest.raises(ValueError):
            manager.create("gho_token", "octocat", ttl_ms=ttl_ms)

    def test_gives_up_after_repeated_collisions(self, manager: SessionManager) -> None:
        """Given an id generator that always collides, raises StoreUnavailable."""
        manager.create_with_id("fixed", "gho_token", "octocat")

        with patch.object(manager, "generate_id", return_value="fixed"):
            with pytest.raises(StoreUnavailable):
                manager.create("gho_other", "mallory")

        assert manager.validate("fixed").username == "octocat"


class TestCreateWithId:
    """Tests for create_with_id()."""

    def test_creates_under_given_id(self, manager: SessionManager) -> None:
        """Given a free id, creates the session."""
        assert manager.create_with_id("abc", "pending_oauth", "pending") is True
        assert manager.validate("abc").is_pending is True

    def test_duplicate_live_id_rejected(self, manager: SessionManager) -> None:
        """Given a live session under the id, returns False and leaves it unchanged."""
        manager.create_with_id("abc", "gho_first", "alice")

        assert manager.create_with_id("abc", "gho_second", "mallory") is False
        record = manager.validate("abc")
        assert record.access_token == "gho_first"
        assert record.username == "alice"

    def test_expired_id_can_be_reused(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given an expired session under the id, creating again succeeds."""
        manager.create_with_id("abc", "gho_first", "alice", ttl_ms=100)
        clock.advance(101)

        assert manager.create_with_id("abc", "gho_second", "bob") is True
        assert manager.validate("abc").username == "bob"


class TestValidate:
    """Tests for validate() and expiry."""

    def test_unknown_id(self, manager: SessionManager) -> None:
        assert manager.validate("missing") is None

    def test_expiry_is_exclusive(
        self, manager: SessionManager, store: MemorySessionStore, clock: FakeClock
    ) -> None:
        """Given now == expires_at the session is live; one ms later it is gone."""
        session_id = manager.create("gho_token", "octocat", ttl_ms=1000)

        clock.advance(1000)
        assert manager.validate(session_id) is not None

        clock.advance(1)
        assert manager.validate(session_id) is None
        assert session_id not in [sid for sid, _ in store.list()]

    def test_store_failure_propagates(self) -> None:
        """Given an unreachable store, validate raises instead of returning None."""
        store = MagicMock(spec=SessionStore)
        store.clock = lambda: 0
        store.list.side_effect = StoreUnavailable("down", operation="list")
        manager = SessionManager(store)

        with pytest.raises(StoreUnavailable):
            manager.validate("s1")


class TestUpdate:
    """Tests for update()."""

    def test_replaces_token_and_username(self, manager: SessionManager) -> None:
        """Given a live session, token and username are replaced."""
        session_id = manager.create("pending_oauth", "pending")

        assert manager.update(session_id, "gho_real", "octocat") is True
        record = manager.validate(session_id)
        assert record.access_token == "gho_real"
        assert record.username == "octocat"

    def test_preserves_created_at(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given a later update, created_at does not move."""
        session_id = manager.create("gho_a", "octocat")
        created_at = manager.validate(session_id).created_at
        clock.advance(5000)

        manager.update(session_id, "gho_b", "octocat", ttl_ms=60_000)

        assert manager.validate(session_id).created_at == created_at

    def test_ttl_recomputes_expiry_from_now(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given a ttl, expires_at = now + ttl."""
        session_id = manager.create("gho_a", "octocat", ttl_ms=10_000)
        clock.advance(5000)

        manager.update(session_id, "gho_b", "octocat", ttl_ms=60_000)

        assert manager.validate(session_id).expires_at == clock() + 60_000

    def test_without_ttl_keeps_expiry(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given no ttl, expires_at is unchanged."""
        session_id = manager.create("gho_a", "octocat", ttl_ms=10_000)
        expires_at = manager.validate(session_id).expires_at
        clock.advance(5000)

        manager.update(session_id, "gho_b", "octocat")

        assert manager.validate(session_id).expires_at == expires_at

    def test_missing_session_not_created(self, manager: SessionManager) -> None:
        """Given no session, update returns False and does not upsert."""
        assert manager.update("ghost", "gho_token", "octocat", ttl_ms=1000) is False
        assert manager.validate("ghost") is None

    def test_expired_session_not_revived(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given an expired session, update returns False."""
        session_id = manager.create("gho_a", "octocat", ttl_ms=100)
        clock.advance(101)

        assert manager.update(session_id, "gho_b", "octocat", ttl_ms=60_000) is False
        assert manager.validate(session_id) is None

    def test_rejects_non_positive_ttl(self, manager: SessionManager) -> None:
        session_id = manager.create("gho_a", "octocat")

        with pytest.raises(ValueError):
            manager.update(session_id, "gho_b", "octocat", ttl_ms=0)


class TestDeleteSweepCount:
    """Tests for delete(), sweep(), count() and delete_for_installation()."""

    def test_delete(self, manager: SessionManager) -> None:
        """Given a session, delete removes it once."""
        session_id = manager.create("gho_a", "octocat")

        assert manager.delete(session_id) is True
        assert manager.delete(session_id) is False
        assert manager.validate(session_id) is None

    def test_sweep_removes_only_expired(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given mixed sessions, sweep removes the expired ones and reports the count."""
        manager.create("gho_a", "a", ttl_ms=100)
        manager.create("gho_b", "b", ttl_ms=100)
        keep = manager.create("gho_c", "c", ttl_ms=10_000)
        clock.advance(101)

        assert manager.sweep() == 2
        assert manager.sweep() == 0
        assert [r.session_id for r in manager.list_sessions()] == [keep]

    def test_sweep_leaves_no_expired_records(
        self, manager: SessionManager, store: MemorySessionStore, clock: FakeClock
    ) -> None:
        """After a sweep, every stored record has expires_at >= now."""
        for ttl in (10, 20, 30, 5000):
            manager.create("gho", "u", ttl_ms=ttl)
        clock.advance(25)

        manager.sweep()

        assert all(record.expires_at >= clock() for _, record in store.list())

    def test_count_excludes_expired(self, manager: SessionManager, clock: FakeClock) -> None:
        """Given expired sessions, count only reports live ones."""
        manager.create("gho_a", "a", ttl_ms=100)
        manager.create("gho_b", "b", ttl_ms=10_000)
        clock.advance(101)

        assert manager.count() == 1

    def test_delete_for_installation(self, manager: SessionManager) -> None:
        """Given sessions for two installations, only the named one is removed."""
        manager.create("gho_a", "a", installation_id="1")
        manager.create("gho_b", "b", installation_id="1")
        other = manager.create("gho_c", "c", installation_id="2")

        assert manager.delete_for_installation("1") == 2
        assert [r.session_id for r in manager.list_sessions()] == [other]

    def test_sweep_keeps_record_recreated_after_listing(self, clock: FakeClock) -> None:
        """Given an expired id re-created live between list() and delete, sweep keeps it."""
        store = _RewritingStore(clock, "abc")
        manager = SessionManager(store)
        manager.create_with_id("abc", "gho_old", "octocat", ttl_ms=10)
        clock.advance(11)
        store.armed = True

        assert manager.sweep() == 0
        record = manager.validate("abc")
        assert record is not None
        assert record.access_token == "gho_fresh"

    def test_delete_for_installation_keeps_record_rebound_after_listing(self, clock: FakeClock) -> None:
        """Given an id rewritten for another installation mid-removal, it is kept."""
        store = _RewritingStore(clock, "abc", installation_id="2")
        manager = SessionManager(store)
        manager.create_with_id("abc", "gho_old", "octocat", installation_id="1")
        store.armed = True

        assert manager.delete_for_installation("1") == 0
        assert manager.validate("abc").installation_id == "2"


class TestClock:
    """Tests for clock wiring."""

    def test_defaults_to_store_clock(self, store: MemorySessionStore, clock: FakeClock) -> None:
        assert SessionManager(store).now() == clock()
