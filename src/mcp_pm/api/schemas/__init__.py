"""API schemas (Pydantic models) for request/response validation.

Centralized schemas for all API routes.
"""

from __future__ import annotations

# Auth schemas
from mcp_pm.api.schemas.auth import (
    AuthorizeResponse,
    LogoutResponse,
    SessionStatusResponse,
)

# GitHub schemas
from mcp_pm.api.schemas.github import (
    CreateRepositoryRequest,
    CreateRepositoryResponse,
    CredentialResponse,
    InstallAutomation,
    InstallationStatusResponse,
    InstallResponse,
    WebhookResponse,
)

# Health schemas
from mcp_pm.api.schemas.health import (
    CheckEnvResponse,
    EnvVarStatus,
    FeatureSupport,
    HealthResponse,
    StoreHealth,
)

__all__ = [
    # Auth
    "AuthorizeResponse",
    "LogoutResponse",
    "SessionStatusResponse",
    # GitHub
    "CreateRepositoryRequest",
    "CreateRepositoryResponse",
    "CredentialResponse",
    "InstallAutomation",
    "InstallResponse",
    "InstallationStatusResponse",
    "WebhookResponse",
    # Health
    "CheckEnvResponse",
    "EnvVarStatus",
    "FeatureSupport",
    "HealthResponse",
    "StoreHealth",
]
