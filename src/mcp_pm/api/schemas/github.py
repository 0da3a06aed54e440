"""GitHub App API schemas."""

from __future__ import annotations

__all__ = [
    "CreateRepositoryRequest",
    "CreateRepositoryResponse",
    "CredentialResponse",
    "InstallAutomation",
    "InstallResponse",
    "InstallationStatusResponse",
    "WebhookResponse",
]

from pydantic import BaseModel, Field

from mcp_pm.constants import GITHUB_LOGIN_PATTERN, INSTALLATION_ID_PATTERN, REPOSITORY_NAME_PATTERN
from mcp_pm.github.app_auth import Installation
from mcp_pm.github.repositories import Repository, RepositoryFile


class InstallAutomation(BaseModel):
    polling_endpoint: str
    polling_parameter: str


class InstallResponse(BaseModel):
    """Installation URL and polling hints for CLI automation."""

    install_url: str
    request_id: str
    polling_interval: int
    app_name: str
    message: str
    automation: InstallAutomation


class InstallationStatusResponse(BaseModel):
    """Installations of the App on a user's account."""

    installed: bool
    username: str
    installations: list[Installation] = Field(default_factory=list)
    message: str


class CredentialResponse(BaseModel):
    """Credential decision for a session/installation pair.

    Never includes token values.
    """

    decision: str
    username: str | None = None
    installation_id: str | None = None
    permitted_operations: list[str]
    installation_token_error: str | None = None


class CreateRepositoryRequest(BaseModel):
    """Repository to create and the files to commit into it.

    Without org the repository belongs to the session's user, which
    requires a user token. With org, an installation token on that
    organization also suffices.
    """

    name: str = Field(pattern=REPOSITORY_NAME_PATTERN)
    org: str | None = Field(default=None, pattern=GITHUB_LOGIN_PATTERN)
    description: str | None = Field(default=None, max_length=350)
    private: bool = False
    installation_id: str | None = Field(default=None, pattern=INSTALLATION_ID_PATTERN)
    files: list[RepositoryFile] = Field(default_factory=list)


class CreateRepositoryResponse(BaseModel):
    success: bool = True
    decision: str
    repository: Repository
    files_pushed: list[str] = Field(default_factory=list)
    message: str


class WebhookResponse(BaseModel):
    event: str
    action: str | None = None
    handled: bool
    sessions_removed: int = 0
