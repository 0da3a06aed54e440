"""OAuth user-authorization and session endpoints.

- GET /api/auth/authorize - issue a pending session and the GitHub authorize URL
- GET /api/auth/callback - exchange the code and activate the session (HTML)
- GET /api/auth/status - session status (400 missing, 401 invalid, 202 pending, 200 active)
- DELETE /api/auth/session - logout

Routes mounted at: /api/auth
"""

from __future__ import annotations

__all__ = ["router"]

import asyncio

from fastapi import APIRouter, Request, Response
from fastapi.responses import HTMLResponse

from mcp_pm.api.deps import (
    ConfigDep,
    OAuthClientDep,
    SessionIdDep,
    SessionManagerDep,
    SessionMetadataDep,
)
from mcp_pm.api.errors import APIError, ErrorCode
from mcp_pm.api.rendering import templates
from mcp_pm.api.schemas import AuthorizeResponse, LogoutResponse, SessionStatusResponse
from mcp_pm.constants import PENDING_ACCESS_TOKEN, PENDING_USERNAME
from mcp_pm.exceptions import OAuthExchangeError, OAuthStateError
from mcp_pm.github.oauth import OAuthState
from mcp_pm.telemetry.session_events import hash_sensitive_id
from mcp_pm.telemetry.system_logger import get_system_logger

router = APIRouter()


@router.get("/authorize", response_model=AuthorizeResponse)
async def authorize(
    config: ConfigDep,
    manager: SessionManagerDep,
    oauth: OAuthClientDep,
    metadata: SessionMetadataDep,
    project_name: str = "mcp-project",
) -> AuthorizeResponse:
    """Start the OAuth flow.

    A pending session is created first so the client can poll its status
    while the user is on GitHub. Its id travels in the state parameter and
    is picked up again by the callback.
    """
    ttl_ms = config.session.default_ttl_ms
    session_id = manager.generate_id()
    created = await asyncio.to_thread(
        manager.create_with_id,
        session_id,
        PENDING_ACCESS_TOKEN,
        PENDING_USERNAME,
        ttl_ms,
        metadata,
    )
    if not created:
        raise APIError(
            status_code=409,
            code=ErrorCode.CONFLICT,
            message="Session id collision, retry the request",
        )

    now = manager.now()
    state = OAuthState(
        session_id=session_id,
        action="create_repo",
        project_name=project_name,
        issued_at=now,
    ).encode(config.state_signing_key())

    return AuthorizeResponse(
        auth_url=oauth.build_authorize_url(state),
        state=state,
        session_id=session_id,
        expires_at=now + ttl_ms,
    )


@router.get("/callback", response_class=HTMLResponse)
async def oauth_callback(
    request: Request,
    config: ConfigDep,
    manager: SessionManagerDep,
    oauth: OAuthClientDep,
    metadata: SessionMetadataDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
) -> HTMLResponse:
    """Complete the OAuth flow and render the success page.

    The pending session named in the state is updated in place. If it has
    expired meanwhile, it is recreated under the same id so a polling client
    still finds it; if that id is taken, a fresh session is issued.
    """
    if error:
        raise APIError(
            status_code=400,
            code=ErrorCode.OAUTH_EXCHANGE_FAILED,
            message=error_description or f"GitHub authorization failed: {error}",
            details={"error": error},
        )
    if not code:
        raise APIError(
            status_code=400,
            code=ErrorCode.OAUTH_CODE_REQUIRED,
            message="Missing required parameter: code",
        )

    try:
        oauth_state = OAuthState.decode(
            state,
            manager.now(),
            config.session.oauth_state_max_age_ms,
            config.state_signing_key(),
        )
    except OAuthStateError as e:
        raise APIError(status_code=400, code=ErrorCode.OAUTH_STATE_INVALID, message=str(e)) from e

    try:
        identity = await asyncio.to_thread(oauth.exchange_code, code, state)
    except OAuthExchangeError as e:
        get_system_logger().warning(
            {
                "event": "oauth_exchange_failed",
                "message": str(e),
                "session_id": hash_sensitive_id(oauth_state.session_id or ""),
            }
        )
        raise APIError(status_code=502, code=ErrorCode.OAUTH_EXCHANGE_FAILED, message=str(e)) from e

    ttl_ms = config.session.default_ttl_ms
    session_id = oauth_state.session_id
    activated = False
    if session_id:
        activated = await asyncio.to_thread(
            manager.update, session_id, identity.access_token, identity.username, ttl_ms
        )
        if not activated:
            activated = await asyncio.to_thread(
                manager.create_with_id,
                session_id,
                identity.access_token,
                identity.username,
                ttl_ms,
                metadata,
            )
    if not activated:
        session_id = await asyncio.to_thread(
            manager.create, identity.access_token, identity.username, ttl_ms, metadata
        )

    return templates.TemplateResponse(
        request,
        "oauth_success.html",
        context={
            "username": identity.username,
            "session_id": session_id,
            "project_name": oauth_state.project_name,
            "ttl_minutes": ttl_ms // 60_000,
        },
    )


@router.get("/status", response_model=SessionStatusResponse)
async def session_status(
    response: Response,
    manager: SessionManagerDep,
    session_id: SessionIdDep,
) -> SessionStatusResponse:
    """Report a session's status.

    Returns 202 while the OAuth flow is still pending, 200 once active.
    """
    record = await asyncio.to_thread(manager.validate, session_id)
    if record is None:
        raise APIError(
            status_code=401,
            code=ErrorCode.SESSION_INVALID,
            message="Invalid or expired session",
            details={"hint": "Session not found or has expired. Please re-authenticate."},
        )

    expires_in = max(0, record.remaining_ms(manager.now()) // 1000)

    if record.is_pending:
        response.status_code = 202
        return SessionStatusResponse(
            authorized=False,
            status="pending_oauth",
            session_id=session_id,
            created_at=record.created_at,
            expires_at=record.expires_at,
            expires_in=expires_in,
            message="Session created, waiting for OAuth completion",
        )

    return SessionStatusResponse(
        authorized=True,
        status="active",
        session_id=session_id,
        username=record.username,
        created_at=record.created_at,
        expires_at=record.expires_at,
        expires_in=expires_in,
        message="Session is valid and active",
    )


@router.delete("/session", response_model=LogoutResponse)
async def logout(manager: SessionManagerDep, session_id: SessionIdDep) -> LogoutResponse:
    """Delete the caller's session."""
    removed = await asyncio.to_thread(manager.delete, session_id)
    if removed:
        return LogoutResponse(status="logged_out", message="Session deleted")
    return LogoutResponse(status="not_found", message="No session to delete")
