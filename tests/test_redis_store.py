"""Unit tests for RedisSessionStore.

The Redis client is a MagicMock; tests assert the commands issued and how
their results are interpreted.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import redis

from conftest import FakeClock
from mcp_pm.exceptions import StoreUnavailable
from mcp_pm.sessions.models import SessionRecord
from mcp_pm.sessions.redis_store import RedisSessionStore

PREFIX = "test:session:"


@pytest.fixture
def client() -> MagicMock:
    """Create a mock Redis client."""
    return MagicMock(spec=redis.Redis)


@pytest.fixture
def redis_store(client: MagicMock, clock: FakeClock) -> RedisSessionStore:
    return RedisSessionStore(client, key_prefix=PREFIX, clock=clock)


def _record(clock: FakeClock, session_id: str = "s1", ttl_ms: int = 60_000) -> SessionRecord:
    return SessionRecord(
        session_id=session_id,
        access_token="gho_token",
        username="octocat",
        created_at=clock(),
        expires_at=clock() + ttl_ms,
    )


class TestGet:
    """Tests for get()."""

    def test_missing_key(self, redis_store: RedisSessionStore, client: MagicMock) -> None:
        """Given no key, returns None."""
        client.get.return_value = None

        assert redis_store.get("s1") is None
        client.get.assert_called_once_with(f"{PREFIX}s1")

    def test_returns_record(self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock) -> None:
        """Given a stored record, returns it."""
        record = _record(clock)
        client.get.return_value = record.to_json()

        assert redis_store.get("s1") == record

    def test_expired_value_deleted(
        self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock
    ) -> None:
        """Given a value past expires_at, deletes the key and returns None."""
        client.get.return_value = _record(clock, ttl_ms=10).to_json()
        clock.advance(11)

        assert redis_store.get("s1") is None
        client.delete.assert_called_once_with(f"{PREFIX}s1")

    def test_corrupt_value_deleted(self, redis_store: RedisSessionStore, client: MagicMock) -> None:
        """Given an unparseable value, deletes the key and returns None."""
        client.get.return_value = "not-json"

        assert redis_store.get("s1") is None
        client.delete.assert_called_once_with(f"{PREFIX}s1")

    def test_connection_error_raises_store_unavailable(
        self, redis_store: RedisSessionStore, client: MagicMock
    ) -> None:
        """Given a Redis connection error, raises StoreUnavailable (not None)."""
        client.get.side_effect = redis.ConnectionError("refused")

        with pytest.raises(StoreUnavailable) as exc_info:
            redis_store.get("s1")

        assert exc_info.value.operation == "get"


class TestWrites:
    """Tests for put(), put_if_absent() and replace()."""

    def test_put_sets_ttl(self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock) -> None:
        """Given a record, SET carries a PX matching expires_at."""
        record = _record(clock, ttl_ms=60_000)

        redis_store.put("s1", record)

        client.set.assert_called_once_with(f"{PREFIX}s1", record.to_json(), px=60_001)

    def test_put_if_absent_uses_nx(
        self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock
    ) -> None:
        """Given a free key, SET NX succeeds."""
        client.set.return_value = True
        record = _record(clock)

        assert redis_store.put_if_absent("s1", record) is True
        assert client.set.call_args.kwargs["nx"] is True

    def test_put_if_absent_live_record_blocks(
        self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock
    ) -> None:
        """Given a live record under the key, returns False without retrying."""
        client.set.return_value = None
        client.get.return_value = _record(clock).to_json()

        assert redis_store.put_if_absent("s1", _record(clock)) is False
        assert client.set.call_count == 1

    def test_put_if_absent_retries_after_corrupt_value(
        self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock
    ) -> None:
        """Given a corrupt value under the key, it is removed and NX retried."""
        client.set.side_effect = [None, True]
        client.get.return_value = "corrupt"

        assert redis_store.put_if_absent("s1", _record(clock)) is True
        assert client.set.call_count == 2
        client.delete.assert_called_once_with(f"{PREFIX}s1")

    def test_put_failure_raises(self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock) -> None:
        """Given a write failure, raises StoreUnavailable."""
        client.set.side_effect = redis.TimeoutError("slow")

        with pytest.raises(StoreUnavailable):
            redis_store.put_if_absent("s1", _record(clock))

    def test_replace_missing_returns_false(
        self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock
    ) -> None:
        """Given no live record, replace returns False and never writes."""
        client.get.return_value = None

        assert redis_store.replace("s1", _record(clock)) is False
        client.set.assert_not_called()

    def test_replace_uses_xx(self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock) -> None:
        """Given a live record, replace issues SET XX."""
        client.get.return_value = _record(clock).to_json()
        client.set.return_value = True

        assert redis_store.replace("s1", _record(clock)) is True
        assert client.set.call_args.kwargs["xx"] is True


class TestDeleteListPing:
    """Tests for delete(), list() and ping()."""

    def test_delete(self, redis_store: RedisSessionStore, client: MagicMock) -> None:
        """Given DEL results, delete reports whether a key was removed."""
        client.delete.side_effect = [1, 0]

        assert redis_store.delete("s1") is True
        assert redis_store.delete("s1") is False

    def test_list_strips_prefix_and_skips_vanished(
        self, redis_store: RedisSessionStore, client: MagicMock, clock: FakeClock
    ) -> None:
        """Given keys that expired between SCAN and MGET, they are skipped."""
        client.scan_iter.return_value = iter([f"{PREFIX}a", f"{PREFIX}b"])
        client.mget.return_value = [_record(clock, "a").to_json(), None]

        result = redis_store.list()

        assert [sid for sid, _ in result] == ["a"]
        client.scan_iter.assert_called_once_with(match=f"{PREFIX}*")

    def test_list_deletes_corrupt(self, redis_store: RedisSessionStore, client: MagicMock) -> None:
        """Given a corrupt value, list deletes its key."""
        client.scan_iter.return_value = iter([f"{PREFIX}bad"])
        client.mget.return_value = ["{}"]

        assert redis_store.list() == []
        client.delete.assert_called_once_with(f"{PREFIX}bad")

    def test_list_empty(self, redis_store: RedisSessionStore, client: MagicMock) -> None:
        """Given no keys, returns [] without MGET."""
        client.scan_iter.return_value = iter([])

        assert redis_store.list() == []
        client.mget.assert_not_called()

    def test_ping_failure(self, redis_store: RedisSessionStore, client: MagicMock) -> None:
        """Given an unreachable server, ping returns False."""
        client.ping.side_effect = redis.ConnectionError("down")

        assert redis_store.ping() is False


class TestDeleteIf:
    """Tests for delete_if() (WATCH/MULTI transaction)."""

    @pytest.fixture
    def pipe(self, client: MagicMock) -> MagicMock:
        return client.pipeline.return_value.__enter__.return_value

    def test_deletes_matching_record(
        self, redis_store: RedisSessionStore, pipe: MagicMock, clock: FakeClock
    ) -> None:
        """Given a watched value matching the condition, DEL runs inside MULTI."""
        pipe.get.return_value = _record(clock, ttl_ms=10).to_json()
        clock.advance(11)
        now = clock()

        assert redis_store.delete_if("s1", lambda r: r.is_expired(now)) is True
        pipe.watch.assert_called_once_with(f"{PREFIX}s1")
        pipe.multi.assert_called_once()
        pipe.delete.assert_called_once_with(f"{PREFIX}s1")
        pipe.execute.assert_called_once()

    def test_live_record_left_alone(
        self, redis_store: RedisSessionStore, pipe: MagicMock, clock: FakeClock
    ) -> None:
        """Given a value that does not match, no transaction is executed."""
        pipe.get.return_value = _record(clock).to_json()
        now = clock()

        assert redis_store.delete_if("s1", lambda r: r.is_expired(now)) is False
        pipe.multi.assert_not_called()
        pipe.execute.assert_not_called()

    def test_missing_key(self, redis_store: RedisSessionStore, pipe: MagicMock) -> None:
        """Given no key, returns False."""
        pipe.get.return_value = None

        assert redis_store.delete_if("s1", lambda r: True) is False
        pipe.execute.assert_not_called()

    def test_rewritten_key_is_judged_again(
        self, redis_store: RedisSessionStore, pipe: MagicMock, clock: FakeClock
    ) -> None:
        """Given the key changes after WATCH, the new value is re-read and kept if live."""
        expired = _record(clock, ttl_ms=10).to_json()
        clock.advance(11)
        fresh = _record(clock).to_json()
        now = clock()
        pipe.get.side_effect = [expired, fresh]
        pipe.execute.side_effect = redis.WatchError("changed")

        assert redis_store.delete_if("s1", lambda r: r.is_expired(now)) is False
        assert pipe.watch.call_count == 2
        pipe.execute.assert_called_once()

    def test_connection_error(self, redis_store: RedisSessionStore, pipe: MagicMock) -> None:
        """Given a Redis failure, raises StoreUnavailable."""
        pipe.watch.side_effect = redis.ConnectionError("down")

        with pytest.raises(StoreUnavailable):
            redis_store.delete_if("s1", lambda r: True)
