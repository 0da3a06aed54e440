"""FastAPI application for the GitHub App integration.

Implements:
- Health API (/api/health, /api/check-env)
- OAuth API (/api/auth) - authorize, callback, session status, logout
- GitHub App API (/api/github) - install, callback, installation status, credential,
  repository creation
- Webhooks (/api/github/webhooks)

Everything stateful (session manager, credential resolver, GitHub clients)
is built once here from an AppConfig and kept on app.state. The session
store is the only shared state between requests; use the Redis backend
whenever more than one process serves the API.

Usage:
    uvicorn mcp_pm.api.server:create_app_from_env --factory --port 3000

    Or from code/tests:
        app = create_app(config, session_store=MemorySessionStore())
"""

from __future__ import annotations

__all__ = ["create_app", "create_app_from_env"]

import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_pm import __version__
from mcp_pm.config import AppConfig
from mcp_pm.constants import GITHUB_API_URL
from mcp_pm.credentials.resolver import CredentialResolver
from mcp_pm.exceptions import ConfigurationError, StoreUnavailable
from mcp_pm.github.app_auth import GitHubAppClient
from mcp_pm.github.oauth import OAuthClient
from mcp_pm.github.repositories import RepositoryClient
from mcp_pm.sessions.manager import SessionManager
from mcp_pm.sessions.models import Clock
from mcp_pm.sessions.store import SessionStore, create_session_store
from mcp_pm.telemetry.system_logger import configure_system_logger, get_system_logger

from .errors import (
    APIError,
    api_error_handler,
    configuration_error_handler,
    http_exception_handler,
    store_unavailable_handler,
    validation_error_handler,
)
from .routes import auth, github, health, webhooks


def create_app(
    config: AppConfig,
    session_store: SessionStore | None = None,
    app_client: GitHubAppClient | None = None,
    oauth_client: OAuthClient | None = None,
    repository_client: RepositoryClient | None = None,
    environ: Mapping[str, str] | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create the FastAPI application with all routes.

    Args:
        config: Application configuration.
        session_store: Session store backend. Defaults to the backend
            selected by config.storage.
        app_client: GitHub App client. Defaults to one built from
            config.github_app (None when the App is not configured).
        oauth_client: OAuth client. Defaults to one built from config.oauth
            (None when OAuth is not configured).
        repository_client: Repository client. Defaults to one on the
            configured GitHub API URL.
        environ: Environment snapshot reported by /api/check-env
            (defaults to os.environ at creation time).
        clock: Time source (epoch ms) for a default-built store.

    Returns:
        Configured FastAPI application.
    """
    store = session_store or create_session_store(config.storage, clock=clock)
    manager = SessionManager(store)

    api_url = config.github_app.api_url if config.github_app else GITHUB_API_URL
    owned_clients: list[GitHubAppClient | OAuthClient | RepositoryClient] = []
    if app_client is None and config.github_app is not None:
        app_client = GitHubAppClient(config.github_app)
        owned_clients.append(app_client)
    if oauth_client is None and config.oauth is not None:
        oauth_client = OAuthClient(config.oauth, api_url=api_url)
        owned_clients.append(oauth_client)
    if repository_client is None:
        repository_client = RepositoryClient(api_url=api_url)
        owned_clients.append(repository_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        for client in owned_clients:
            client.close()

    app = FastAPI(
        title="MCP Project Manager",
        description="GitHub App installation, OAuth and session API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.session_manager = manager
    app.state.credential_resolver = CredentialResolver(manager, app_client)
    app.state.app_client = app_client
    app.state.oauth_client = oauth_client
    app.state.repository_client = repository_client
    app.state.env_status = AppConfig.env_status(environ)
    app.state.started_at = time.monotonic()

    # Register exception handlers for structured error responses
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Mount API routes (webhooks before github so the longer prefix wins)
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(webhooks.router, prefix="/api/github/webhooks", tags=["webhooks"])
    app.include_router(github.router, prefix="/api/github", tags=["github"])

    get_system_logger().info(
        {
            "event": "api_app_created",
            "message": f"API ready (session store: {config.storage.backend})",
            "github_app_configured": app_client is not None,
            "oauth_configured": oauth_client is not None,
        }
    )
    return app


def create_app_from_env() -> FastAPI:
    """uvicorn factory: configuration from the process environment."""
    config = AppConfig.from_env()
    configure_system_logger(config.logging)
    return create_app(config, environ=os.environ)
