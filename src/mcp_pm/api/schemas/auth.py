"""OAuth and session API schemas."""

from __future__ import annotations

__all__ = [
    "AuthorizeResponse",
    "LogoutResponse",
    "SessionStatusResponse",
]

from typing import Literal

from pydantic import BaseModel


class AuthorizeResponse(BaseModel):
    """Start of the OAuth flow.

    session_id identifies the pending session; poll /api/auth/status with it
    until the callback completes.
    """

    auth_url: str
    state: str
    session_id: str
    expires_at: int


class SessionStatusResponse(BaseModel):
    """Session status for /api/auth/status.

    Returned with 202 while the session is pending and 200 once active.
    """

    authorized: bool
    status: Literal["pending_oauth", "active"]
    session_id: str
    username: str | None = None
    created_at: int
    expires_at: int
    expires_in: int  # seconds
    message: str


class LogoutResponse(BaseModel):
    status: Literal["logged_out", "not_found"]
    message: str
