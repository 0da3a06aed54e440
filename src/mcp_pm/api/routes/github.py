"""GitHub App installation endpoints.

- GET /api/github/install - installation URL plus polling hints
- GET /api/github/callback - installation callback (HTML), optional OAuth code
- GET /api/github/installation-status - installations on a user's account
- GET /api/github/credential - credential decision for a session/installation
- POST /api/github/repositories - create a repository and commit files

Routes mounted at: /api/github
"""

from __future__ import annotations

__all__ = ["router"]

import asyncio
import secrets

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse

from mcp_pm.api.deps import (
    AppClientDep,
    ConfigDep,
    CredentialResolverDep,
    OptionalAppClientDep,
    OptionalOAuthClientDep,
    OptionalSessionIdDep,
    RepositoryClientDep,
    SessionManagerDep,
    SessionMetadataDep,
)
from mcp_pm.api.errors import APIError, ErrorCode
from mcp_pm.api.rendering import templates
from mcp_pm.api.schemas import (
    CreateRepositoryRequest,
    CreateRepositoryResponse,
    CredentialResponse,
    InstallAutomation,
    InstallationStatusResponse,
    InstallResponse,
)
from mcp_pm.constants import DEFAULT_APP_SLUG, INSTALL_POLL_INTERVAL_SECONDS, INSTALLATION_ID_PATTERN
from mcp_pm.credentials.resolver import CredentialDecision, Operation
from mcp_pm.credentials.view import CallbackView
from mcp_pm.exceptions import (
    ConfigurationError,
    GitHubAPIError,
    OAuthExchangeError,
    OAuthStateError,
    OperationNotPermitted,
    TokenMintFailure,
)
from mcp_pm.github.oauth import OAuthIdentity, OAuthState, build_install_url
from mcp_pm.telemetry.system_logger import get_system_logger

router = APIRouter()

InstallationIdQuery = Query(
    default=None,
    pattern=INSTALLATION_ID_PATTERN,
    description="Numeric GitHub App installation id",
)


@router.get("/install", response_model=InstallResponse)
async def install(
    config: ConfigDep,
    manager: SessionManagerDep,
    project_name: str = "mcp-project",
) -> InstallResponse:
    """Build the App installation URL.

    Public endpoint: CLI automation calls it before the user has any session.
    """
    slug = config.github_app.slug if config.github_app else DEFAULT_APP_SLUG
    request_id = f"req_{secrets.token_urlsafe(12)}"
    state = OAuthState(
        action="install_app",
        project_name=project_name,
        request_id=request_id,
        issued_at=manager.now(),
    ).encode(config.state_signing_key())

    return InstallResponse(
        install_url=build_install_url(slug, state),
        request_id=request_id,
        polling_interval=INSTALL_POLL_INTERVAL_SECONDS,
        app_name=slug,
        message="Please install the GitHub App to authorize repository creation.",
        automation=InstallAutomation(
            polling_endpoint="/api/github/installation-status",
            polling_parameter="user",
        ),
    )


@router.get("/callback", response_class=HTMLResponse)
async def installation_callback(
    request: Request,
    config: ConfigDep,
    manager: SessionManagerDep,
    app_client: OptionalAppClientDep,
    oauth_client: OptionalOAuthClientDep,
    metadata: SessionMetadataDep,
    installation_id: str | None = InstallationIdQuery,
    setup_action: str | None = None,
    code: str | None = None,
    state: str | None = None,
) -> HTMLResponse:
    """Handle GitHub's redirect after the App was installed.

    Partial success is a valid outcome: if the installation token cannot be
    minted, or the OAuth code is missing or fails, the page says what works
    and a session is only created when a user token was obtained.
    """
    if setup_action != "install":
        raise APIError(
            status_code=400,
            code=ErrorCode.GITHUB_SETUP_ACTION_INVALID,
            message="Expected GitHub App installation callback with setup_action=install",
            details={"setup_action": setup_action},
        )
    if not installation_id:
        raise APIError(
            status_code=400,
            code=ErrorCode.GITHUB_INSTALLATION_REQUIRED,
            message="Missing installation ID",
        )

    logger = get_system_logger()

    oauth_state: OAuthState | None = None
    if state:
        try:
            oauth_state = OAuthState.decode(
                state,
                manager.now(),
                config.session.oauth_state_max_age_ms,
                config.state_signing_key(),
            )
        except (OAuthStateError, ConfigurationError) as e:
            logger.info(
                {
                    "event": "install_state_ignored",
                    "message": f"Ignoring install state: {e}",
                    "installation_id": installation_id,
                }
            )

    identity: OAuthIdentity | None = None
    if code and oauth_client is not None:
        try:
            identity = await asyncio.to_thread(oauth_client.exchange_code, code, state)
        except OAuthExchangeError as e:
            logger.warning(
                {
                    "event": "oauth_exchange_failed",
                    "message": f"Continuing installation-only: {e}",
                    "installation_id": installation_id,
                }
            )

    installation_token_obtained = False
    if app_client is not None:
        try:
            await asyncio.to_thread(app_client.get_installation_token, installation_id)
            installation_token_obtained = True
        except TokenMintFailure as e:
            logger.warning(
                {
                    "event": "installation_token_mint_failed",
                    "message": str(e),
                    "installation_id": installation_id,
                    "status_code": e.status_code,
                }
            )

    session_id: str | None = None
    if identity is not None:
        session_id = await asyncio.to_thread(
            manager.create,
            identity.access_token,
            identity.username,
            config.session.default_ttl_ms,
            metadata,
            installation_id,
        )

    view = CallbackView(
        installation_id=installation_id,
        username=identity.username if identity else "unknown",
        has_user_token=identity is not None,
        installation_token_obtained=installation_token_obtained,
        project_name=oauth_state.project_name if oauth_state else "mcp-project",
        session_id=session_id,
    )
    logger.info(
        {
            "event": "installation_callback_completed",
            "message": f"Installation {installation_id} callback: {view.status}",
            "installation_id": installation_id,
            "decision": view.decision.value,
            "request_id": oauth_state.request_id if oauth_state else None,
        }
    )

    return templates.TemplateResponse(request, "callback_success.html", context={"view": view})


@router.get("/installation-status", response_model=InstallationStatusResponse)
async def installation_status(app_client: AppClientDep, user: str | None = None) -> InstallationStatusResponse:
    """List the App's installations on a user's account."""
    if not user:
        raise APIError(
            status_code=400,
            code=ErrorCode.VALIDATION_ERROR,
            message="Username required",
            details={"usage": "GET /api/github/installation-status?user=<username>"},
        )

    try:
        installations = await asyncio.to_thread(app_client.find_installations_for_user, user)
    except (GitHubAPIError, TokenMintFailure) as e:
        raise APIError(
            status_code=502,
            code=ErrorCode.GITHUB_API_ERROR,
            message="Failed to check installation status",
            details={"username": user, "error": str(e)},
        ) from e

    if installations:
        message = f"Found {len(installations)} installation(s) for user {user}"
    else:
        message = f"No GitHub App installations found for user {user}"

    return InstallationStatusResponse(
        installed=bool(installations),
        username=user,
        installations=installations,
        message=message,
    )


@router.get("/credential", response_model=CredentialResponse)
async def credential(
    resolver: CredentialResolverDep,
    session_id: OptionalSessionIdDep,
    installation_id: str | None = InstallationIdQuery,
) -> CredentialResponse:
    """Report which credential a request would use and what it permits.

    Token values are never returned.
    """
    resolved = await asyncio.to_thread(resolver.resolve, session_id, installation_id)
    return CredentialResponse(
        decision=resolved.decision.value,
        username=resolved.username,
        installation_id=resolved.installation_id,
        permitted_operations=sorted(op.value for op in resolved.permitted_operations),
        installation_token_error=resolved.installation_token_error,
    )


@router.post("/repositories", response_model=CreateRepositoryResponse, status_code=201)
async def create_repository(
    body: CreateRepositoryRequest,
    resolver: CredentialResolverDep,
    repo_client: RepositoryClientDep,
    session_id: OptionalSessionIdDep,
) -> CreateRepositoryResponse:
    """Create a repository with the resolved credential and commit the given files.

    A personal repository needs a user token. An organization repository
    also accepts the installation token of an App installed on it.
    """
    resolved = await asyncio.to_thread(resolver.resolve, session_id, body.installation_id)
    operation = Operation.CREATE_ORG_REPO if body.org else Operation.CREATE_PERSONAL_REPO

    try:
        token = resolved.require(operation)
    except OperationNotPermitted as e:
        no_credential = e.decision is CredentialDecision.NO_CREDENTIAL
        raise APIError(
            status_code=401 if no_credential else 403,
            code=ErrorCode.AUTH_REQUIRED if no_credential else ErrorCode.AUTH_FORBIDDEN,
            message=str(e),
            details={
                "operation": e.operation.value,
                "decision": e.decision.value,
                "permitted_operations": sorted(op.value for op in resolved.permitted_operations),
                "installation_token_error": resolved.installation_token_error,
            },
        ) from e

    try:
        repository = await asyncio.to_thread(
            repo_client.create_repository,
            token,
            body.name,
            org=body.org,
            description=body.description,
            private=body.private,
        )
    except GitHubAPIError as e:
        if e.status_code == 422:
            raise APIError(
                status_code=409,
                code=ErrorCode.CONFLICT,
                message=f"Repository {body.name} already exists or the name is not allowed",
                details={"name": body.name, "org": body.org},
            ) from e
        raise APIError(
            status_code=502,
            code=ErrorCode.GITHUB_API_ERROR,
            message="Failed to create repository",
            details={"name": body.name, "org": body.org, "error": str(e)},
        ) from e

    pushed: list[str] = []
    try:
        if body.files:
            pushed = await asyncio.to_thread(repo_client.push_files, token, repository, body.files)
    except GitHubAPIError as e:
        raise APIError(
            status_code=502,
            code=ErrorCode.GITHUB_API_ERROR,
            message=f"Repository {repository.full_name} was created but committing files failed",
            details={"repository": repository.full_name, "html_url": repository.html_url, "error": str(e)},
        ) from e

    get_system_logger().info(
        {
            "event": "repository_published",
            "message": f"Published {repository.full_name} with {len(pushed)} file(s)",
            "repository": repository.full_name,
            "decision": resolved.decision.value,
            "operation": operation.value,
        }
    )
    return CreateRepositoryResponse(
        decision=resolved.decision.value,
        repository=repository,
        files_pushed=pushed,
        message=f"Repository {repository.full_name} created",
    )
