"""Redis-backed session store.

Used when requests may be served by different processes (serverless
deployments), so a pending session created on one instance is visible to
the callback handled by another.

Each record is stored as a string key "<prefix><session_id>" holding the
SessionRecord JSON, with a native Redis TTL matching the record's
expires_at. Redis therefore expires keys on its own; the manager's sweep
only has to catch values whose TTL was lost (e.g. manual writes).

Conditional writes map onto SET NX/XX so identifier uniqueness does not
depend on a separate read. Conditional deletes WATCH the key so a value
rewritten between the read and the DEL aborts the transaction.
"""

from __future__ import annotations

__all__ = [
    "RedisSessionStore",
]

from collections.abc import Callable, Iterator
from contextlib import contextmanager

import redis

from mcp_pm.constants import DEFAULT_SESSION_KEY_PREFIX
from mcp_pm.exceptions import StoreUnavailable
from mcp_pm.sessions.models import Clock, SessionRecord
from mcp_pm.sessions.store import SessionStore
from mcp_pm.telemetry.system_logger import get_system_logger


class RedisSessionStore(SessionStore):
    """Session store on a Redis server.

    Args:
        client: Redis client created with decode_responses=True.
        key_prefix: Namespace prefix for session keys.
        clock: Time source (epoch ms) used for expiry checks and TTLs.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = DEFAULT_SESSION_KEY_PREFIX,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock)
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        key_prefix: str = DEFAULT_SESSION_KEY_PREFIX,
        clock: Clock | None = None,
    ) -> "RedisSessionStore":
        """Create a store from a redis:// or rediss:// URL."""
        return cls(redis.from_url(url, decode_responses=True), key_prefix=key_prefix, clock=clock)

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def _ttl_ms(self, record: SessionRecord) -> int:
        # +1 so the key outlives the final inclusive millisecond of the record
        return max(1, record.expires_at - self.clock() + 1)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Translate Redis errors into StoreUnavailable."""
        try:
            yield
        except redis.RedisError as e:
            get_system_logger().error(
                {
                    "event": "session_store_unavailable",
                    "message": f"Redis {operation} failed: {e}",
                    "operation": operation,
                    "error_type": type(e).__name__,
                }
            )
            raise StoreUnavailable(f"Session store {operation} failed: {e}", operation=operation) from e

    def get(self, session_id: str) -> SessionRecord | None:
        key = self._key(session_id)
        with self._guard("get"):
            raw = self._client.get(key)
            if raw is None:
                return None

            record = self._decode(session_id, raw)
            if record is None or record.is_expired(self.clock()):
                self._client.delete(key)
                return None

            return record

    def put(self, session_id: str, record: SessionRecord) -> None:
        with self._guard("put"):
            self._client.set(self._key(session_id), record.to_json(), px=self._ttl_ms(record))

    def put_if_absent(self, session_id: str, record: SessionRecord) -> bool:
        key = self._key(session_id)
        with self._guard("put_if_absent"):
            if self._client.set(key, record.to_json(), px=self._ttl_ms(record), nx=True):
                return True

        # Key exists: a corrupt or expired value must not block the write.
        # get() removes such values, after which NX is retried once.
        if self.get(session_id) is not None:
            return False

        with self._guard("put_if_absent"):
            return bool(self._client.set(key, record.to_json(), px=self._ttl_ms(record), nx=True))

    def replace(self, session_id: str, record: SessionRecord) -> bool:
        if self.get(session_id) is None:
            return False

        with self._guard("replace"):
            return bool(
                self._client.set(self._key(session_id), record.to_json(), px=self._ttl_ms(record), xx=True)
            )

    def delete(self, session_id: str) -> bool:
        with self._guard("delete"):
            return bool(self._client.delete(self._key(session_id)))

    def delete_if(self, session_id: str, condition: Callable[[SessionRecord], bool]) -> bool:
        key = self._key(session_id)
        with self._guard("delete_if"), self._client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is None:
                        return False

                    record = self._decode(session_id, raw)
                    if record is None or not condition(record):
                        return False

                    pipe.multi()
                    pipe.delete(key)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    # Key changed after WATCH; judge the new value
                    continue

    def list(self) -> list[tuple[str, SessionRecord]]:
        result: list[tuple[str, SessionRecord]] = []
        with self._guard("list"):
            keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
            if not keys:
                return result

            values = self._client.mget(keys)
            for key, raw in zip(keys, values):
                if raw is None:
                    # Expired between SCAN and MGET
                    continue
                session_id = key[len(self._prefix) :]
                record = self._decode(session_id, raw)
                if record is None:
                    self._client.delete(key)
                    continue
                result.append((session_id, record))

        return result

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
