"""Repository creation and file publishing on GitHub.

The caller supplies the bearer token: the credential resolver decides
whether a user token (personal or organization repositories) or an
installation token (organization repositories only) is used, and this
client never chooses between them.

Endpoints:
- POST /user/repos - repository owned by the token's user
- POST /orgs/{org}/repos - repository owned by an organization
- PUT /repos/{owner}/{repo}/contents/{path} - one commit per file
"""

from __future__ import annotations

__all__ = [
    "Repository",
    "RepositoryClient",
    "RepositoryFile",
]

import base64
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, field_validator

from mcp_pm.constants import (
    DEFAULT_REPO_GITIGNORE_TEMPLATE,
    DEFAULT_REPO_LICENSE_TEMPLATE,
    GITHUB_API_ACCEPT,
    GITHUB_API_URL,
    GITHUB_HTTP_TIMEOUT_SECONDS,
    GITHUB_USER_AGENT,
)
from mcp_pm.exceptions import GitHubAPIError
from mcp_pm.telemetry.system_logger import get_system_logger


class RepositoryFile(BaseModel):
    """A file to commit into a repository.

    Attributes:
        path: Repository-relative path using "/" separators.
        content: UTF-8 text content.
    """

    path: str = Field(min_length=1, max_length=1024)
    content: str

    @field_validator("path")
    @classmethod
    def relative_path_only(cls, value: str) -> str:
        parts = value.split("/")
        if "\\" in value or any(part in ("", ".", "..") for part in parts):
            raise ValueError("path must be relative, with no empty, '.' or '..' segments")
        return value


class Repository(BaseModel):
    """The subset of GitHub's repository object the API reports back."""

    name: str
    full_name: str
    owner: str
    html_url: str
    clone_url: str | None = None
    default_branch: str = "main"
    private: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Repository":
        return cls(
            name=data["name"],
            full_name=data["full_name"],
            owner=data["owner"]["login"],
            html_url=data["html_url"],
            clone_url=data.get("clone_url"),
            default_branch=data.get("default_branch") or "main",
            private=bool(data.get("private", False)),
        )


class RepositoryClient:
    """Creates repositories and commits files with a caller-supplied token.

    Usage:
        with RepositoryClient() as client:
            repo = client.create_repository(token, "my-server")
            client.push_files(token, repo, files)
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        api_url: str = GITHUB_API_URL,
    ) -> None:
        """Initialize the repository client.

        Args:
            http_client: Optional httpx client (for testing).
            api_url: GitHub REST API base URL.
        """
        self._client = http_client or httpx.Client(timeout=GITHUB_HTTP_TIMEOUT_SECONDS)
        self._owns_client = http_client is None
        self._base_url = api_url.rstrip("/")

    def __enter__(self) -> "RepositoryClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, path: str, token: str, action: str, **kwargs: Any) -> Any:
        """Send an authenticated request and return the decoded JSON body.

        Raises:
            GitHubAPIError: On a non-2xx status, a transport error, or a
                non-JSON body.
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": GITHUB_API_ACCEPT,
            "User-Agent": GITHUB_USER_AGENT,
        }
        try:
            response = self._client.request(method, f"{self._base_url}{path}", headers=headers, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise GitHubAPIError(f"GitHub returned {status} {action}", status_code=status) from e
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"HTTP error {action}: {e}") from e
        except ValueError as e:
            raise GitHubAPIError(f"Unexpected GitHub response {action}: {e}") from e

    def create_repository(
        self,
        token: str,
        name: str,
        *,
        org: str | None = None,
        description: str | None = None,
        private: bool = False,
    ) -> Repository:
        """Create a repository, initialized with a README, .gitignore and license.

        Args:
            token: Bearer token allowed to create the repository.
            name: Repository name.
            org: Organization login; None creates it for the token's user.
            description: Repository description (defaults to one naming the project).
            private: Create a private repository.

        Returns:
            The created repository.

        Raises:
            GitHubAPIError: If GitHub rejects the request (422 when the name
                is taken) or is unreachable.
        """
        path = f"/orgs/{quote(org, safe='')}/repos" if org else "/user/repos"
        payload = {
            "name": name,
            "description": description or f"MCP server project: {name}",
            "private": private,
            "auto_init": True,
            "gitignore_template": DEFAULT_REPO_GITIGNORE_TEMPLATE,
            "license_template": DEFAULT_REPO_LICENSE_TEMPLATE,
        }
        data = self._request("POST", path, token, f"creating repository {name}", json=payload)
        try:
            repository = Repository.from_api(data)
        except (KeyError, TypeError, ValueError) as e:
            raise GitHubAPIError(f"Unexpected repository response: {e}") from e

        get_system_logger().info(
            {
                "event": "repository_created",
                "message": f"Repository {repository.full_name} created",
                "repository": repository.full_name,
                "organization": org,
                "private": repository.private,
            }
        )
        return repository

    def push_files(self, token: str, repository: Repository, files: list[RepositoryFile]) -> list[str]:
        """Commit each file to the repository's default branch.

        Files are committed one at a time; a failure stops the push and
        earlier commits stay in place.

        Returns:
            Paths committed, in order.

        Raises:
            GitHubAPIError: If a commit fails.
        """
        owner = quote(repository.owner, safe="")
        repo = quote(repository.name, safe="")
        pushed: list[str] = []
        for file in files:
            payload = {
                "message": f"Add {file.path}",
                "content": base64.b64encode(file.content.encode("utf-8")).decode("ascii"),
                "branch": repository.default_branch,
            }
            self._request(
                "PUT",
                f"/repos/{owner}/{repo}/contents/{quote(file.path, safe='/')}",
                token,
                f"committing {file.path}",
                json=payload,
            )
            pushed.append(file.path)

        get_system_logger().info(
            {
                "event": "repository_files_pushed",
                "message": f"Pushed {len(pushed)} file(s) to {repository.full_name}",
                "repository": repository.full_name,
                "file_count": len(pushed),
            }
        )
        return pushed
