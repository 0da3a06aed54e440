"""Session record model and time helpers.

All timestamps are integer milliseconds since the epoch. Expiry is
exclusive: a record is expired the instant now > expires_at.
"""

from __future__ import annotations

__all__ = [
    "Clock",
    "SessionMetadata",
    "SessionRecord",
    "system_clock",
]

import time
from dataclasses import dataclass
from typing import Callable

from pydantic import BaseModel, Field, model_validator

from mcp_pm.constants import PENDING_ACCESS_TOKEN, PENDING_USERNAME

# Returns the current time in epoch milliseconds
Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class SessionMetadata:
    """Provenance metadata recorded with a session.

    Not used for authorization decisions.

    Attributes:
        ip_address: Client IP address at creation time.
        user_agent: Client User-Agent at creation time.
    """

    ip_address: str | None = None
    user_agent: str | None = None


class SessionRecord(BaseModel):
    """A short-lived session correlating a bearer credential with a GitHub login.

    Attributes:
        session_id: Opaque unique identifier.
        access_token: OAuth or installation bearer token.
        username: Resolved GitHub login.
        created_at: Creation time (ms epoch).
        expires_at: Absolute expiry (ms epoch), exclusive.
        ip_address: Provenance metadata.
        user_agent: Provenance metadata.
        installation_id: Installation the session was created for, if any.
    """

    session_id: str = Field(min_length=1)
    access_token: str
    username: str
    created_at: int
    expires_at: int
    ip_address: str | None = None
    user_agent: str | None = None
    installation_id: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def expiry_after_creation(self) -> "SessionRecord":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be greater than created_at")
        return self

    def is_expired(self, now_ms: int) -> bool:
        """Check whether the record is expired at now_ms."""
        return now_ms > self.expires_at

    def remaining_ms(self, now_ms: int) -> int:
        """Milliseconds until expiry (negative once expired)."""
        return self.expires_at - now_ms

    @property
    def is_pending(self) -> bool:
        """True for a session issued before the OAuth exchange completed."""
        return self.access_token == PENDING_ACCESS_TOKEN and self.username == PENDING_USERNAME

    @property
    def has_user_token(self) -> bool:
        """True if the record carries a usable user access token."""
        return bool(self.access_token) and not self.is_pending

    def to_json(self) -> str:
        """Serialize to JSON string for storage."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "SessionRecord":
        """Deserialize from JSON string.

        Raises:
            pydantic.ValidationError: If the data is not a valid record.
        """
        return cls.model_validate_json(data)
