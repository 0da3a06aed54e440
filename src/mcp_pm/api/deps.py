"""Shared dependencies for API routes.

FastAPI convention: deps.py contains reusable request dependencies.
Everything a route needs (config, session manager, resolver, GitHub
clients) is built once in create_app() and kept on app.state; routes reach
it only through these dependencies.

Usage with Annotated:
    from mcp_pm.api.deps import SessionManagerDep, SessionIdDep

    @router.get("/status")
    async def status(manager: SessionManagerDep, session_id: SessionIdDep) -> ...:
        ...
"""

from __future__ import annotations

__all__ = [
    # Dependency functions
    "get_app_client",
    "get_config",
    "get_credential_resolver",
    "get_oauth_client",
    "get_optional_app_client",
    "get_optional_oauth_client",
    "get_optional_session_id",
    "get_repository_client",
    "get_session_id",
    "get_session_manager",
    "get_session_metadata",
    # Type aliases for Annotated pattern
    "AppClientDep",
    "ConfigDep",
    "CredentialResolverDep",
    "OAuthClientDep",
    "OptionalAppClientDep",
    "OptionalOAuthClientDep",
    "OptionalSessionIdDep",
    "RepositoryClientDep",
    "SessionIdDep",
    "SessionManagerDep",
    "SessionMetadataDep",
]

from typing import TYPE_CHECKING, Annotated, Any, Callable

from fastapi import Depends, Request

from mcp_pm.api.errors import APIError, ErrorCode
from mcp_pm.constants import SESSION_ID_HEADER
from mcp_pm.sessions.models import SessionMetadata

if TYPE_CHECKING:
    from mcp_pm.config import AppConfig
    from mcp_pm.credentials.resolver import CredentialResolver
    from mcp_pm.github.app_auth import GitHubAppClient
    from mcp_pm.github.oauth import OAuthClient
    from mcp_pm.github.repositories import RepositoryClient
    from mcp_pm.sessions.manager import SessionManager


# =============================================================================
# Factory for State Getters
# =============================================================================


def _create_state_getter(
    attr_name: str,
    type_hint: str,
    error_detail: str,
) -> Callable[[Request], Any]:
    """Create a dependency function that retrieves a value from app.state.

    Args:
        attr_name: Attribute name on app.state (e.g., "config").
        type_hint: Type name used in the generated docstring.
        error_detail: Error message when the value is missing.

    Returns:
        A dependency function compatible with FastAPI's Depends().
    """

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise APIError(
                status_code=503,
                code=ErrorCode.SERVICE_UNAVAILABLE,
                message=error_detail,
            )
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {type_hint} from app.state.\n\nRaises APIError 503 if not available."
    return getter


# =============================================================================
# Dependency Functions
# =============================================================================

get_config: Callable[[Request], "AppConfig"] = _create_state_getter(
    "config",
    "AppConfig",
    "Configuration not available.",
)

get_session_manager: Callable[[Request], "SessionManager"] = _create_state_getter(
    "session_manager",
    "SessionManager",
    "Session manager not available.",
)

get_credential_resolver: Callable[[Request], "CredentialResolver"] = _create_state_getter(
    "credential_resolver",
    "CredentialResolver",
    "Credential resolver not available.",
)

get_repository_client: Callable[[Request], "RepositoryClient"] = _create_state_getter(
    "repository_client",
    "RepositoryClient",
    "Repository client not available.",
)


def get_optional_app_client(request: Request) -> "GitHubAppClient | None":
    """Get the GitHub App client, or None when the App is not configured."""
    client: GitHubAppClient | None = getattr(request.app.state, "app_client", None)
    return client


def get_app_client(request: Request) -> "GitHubAppClient":
    """Get the GitHub App client.

    Raises:
        ConfigurationError: If APP_ID / PRIVATE_KEY are not configured.
    """
    client = get_optional_app_client(request)
    if client is None:
        get_config(request).require_github_app()
        raise APIError(
            status_code=503,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message="GitHub App client not available.",
        )
    return client


def get_optional_oauth_client(request: Request) -> "OAuthClient | None":
    """Get the OAuth client, or None when OAuth is not configured."""
    client: OAuthClient | None = getattr(request.app.state, "oauth_client", None)
    return client


def get_oauth_client(request: Request) -> "OAuthClient":
    """Get the OAuth client.

    Raises:
        ConfigurationError: If the OAuth client is not configured.
    """
    client = get_optional_oauth_client(request)
    if client is None:
        get_config(request).require_oauth()
        raise APIError(
            status_code=503,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message="OAuth client not available.",
        )
    return client


def get_optional_session_id(request: Request) -> str | None:
    """Session id from the session-id header, falling back to the query string."""
    session_id = request.headers.get(SESSION_ID_HEADER) or request.query_params.get(SESSION_ID_HEADER)
    return session_id or None


def get_session_id(request: Request) -> str:
    """Session id presented by the caller.

    Raises:
        APIError: 400 if no session id was presented.
    """
    session_id = get_optional_session_id(request)
    if session_id is None:
        raise APIError(
            status_code=400,
            code=ErrorCode.SESSION_ID_REQUIRED,
            message="Missing session ID",
            details={"hint": f"Provide '{SESSION_ID_HEADER}' as a header or query parameter"},
        )
    return session_id


def get_session_metadata(request: Request) -> SessionMetadata:
    """Provenance metadata for sessions created by this request."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address: str | None = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return SessionMetadata(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


# =============================================================================
# Type Aliases for Annotated Pattern
# =============================================================================

ConfigDep = Annotated["AppConfig", Depends(get_config)]
SessionManagerDep = Annotated["SessionManager", Depends(get_session_manager)]
CredentialResolverDep = Annotated["CredentialResolver", Depends(get_credential_resolver)]
AppClientDep = Annotated["GitHubAppClient", Depends(get_app_client)]
OptionalAppClientDep = Annotated["GitHubAppClient | None", Depends(get_optional_app_client)]
OAuthClientDep = Annotated["OAuthClient", Depends(get_oauth_client)]
OptionalOAuthClientDep = Annotated["OAuthClient | None", Depends(get_optional_oauth_client)]
RepositoryClientDep = Annotated["RepositoryClient", Depends(get_repository_client)]
SessionIdDep = Annotated[str, Depends(get_session_id)]
OptionalSessionIdDep = Annotated[str | None, Depends(get_optional_session_id)]
SessionMetadataDep = Annotated[SessionMetadata, Depends(get_session_metadata)]
