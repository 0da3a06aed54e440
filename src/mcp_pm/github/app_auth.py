"""GitHub App authentication: App JWTs and installation access tokens.

An App authenticates as itself with a short-lived RS256 JWT signed by its
private key, then exchanges that JWT for an installation access token
(POST /app/installations/{id}/access_tokens). Installation tokens live one
hour; they are cached in-process and re-minted shortly before GitHub's
expires_at.

Installation tokens are never persisted: they can be regenerated at any
time from the App credentials.
"""

from __future__ import annotations

__all__ = [
    "GitHubAppClient",
    "Installation",
]

import re
import threading
import time
from datetime import datetime
from typing import Any

import httpx
import jwt
from pydantic import BaseModel

from mcp_pm.config import GitHubAppConfig
from mcp_pm.constants import (
    APP_JWT_BACKDATE_SECONDS,
    APP_JWT_LIFETIME_SECONDS,
    GITHUB_API_ACCEPT,
    GITHUB_HTTP_TIMEOUT_SECONDS,
    GITHUB_USER_AGENT,
    INSTALLATION_ID_PATTERN,
    INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS,
)
from mcp_pm.exceptions import GitHubAPIError, TokenMintFailure
from mcp_pm.telemetry.system_logger import get_system_logger


class Installation(BaseModel):
    """A GitHub App installation as reported by GET /app/installations.

    Attributes:
        id: Installation id (as a string).
        account_login: Login of the user or organization the App is installed on.
        account_type: "User" or "Organization".
        repository_selection: "all" or "selected".
        permissions: Names of the permissions granted to the App.
        created_at: ISO 8601 installation time.
        updated_at: ISO 8601 last-change time.
    """

    id: str
    account_login: str
    account_type: str
    repository_selection: str | None = None
    permissions: list[str] = []
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Installation":
        """Build from a GitHub API installation object."""
        account = data.get("account") or {}
        return cls(
            id=str(data["id"]),
            account_login=account.get("login", ""),
            account_type=account.get("type", ""),
            repository_selection=data.get("repository_selection"),
            permissions=sorted(data.get("permissions") or {}),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


class GitHubAppClient:
    """GitHub REST client authenticated as a GitHub App.

    Implements InstallationTokenProvider for the credential resolver.

    Usage:
        with GitHubAppClient(config.require_github_app()) as client:
            token = client.get_installation_token("12345")
            installations = client.find_installations_for_user("octocat")
    """

    def __init__(
        self,
        config: GitHubAppConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the App client.

        Args:
            config: GitHub App credentials.
            http_client: Optional httpx client (for testing).
        """
        self._config = config
        self._client = http_client or httpx.Client(timeout=GITHUB_HTTP_TIMEOUT_SECONDS)
        self._owns_client = http_client is None
        self._base_url = config.api_url.rstrip("/")

        # installation_id -> (token, expires_at epoch seconds)
        self._token_cache: dict[str, tuple[str, float]] = {}
        self._cache_lock = threading.Lock()

    def __enter__(self) -> "GitHubAppClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            self._client.close()

    @property
    def slug(self) -> str:
        return self._config.slug

    def generate_jwt(self) -> str:
        """Sign an App JWT.

        Returns:
            Encoded JWT valid for APP_JWT_LIFETIME_SECONDS.

        Raises:
            TokenMintFailure: If the private key cannot sign (malformed PEM).
        """
        now = int(time.time())
        payload = {
            "iat": now - APP_JWT_BACKDATE_SECONDS,
            "exp": now + APP_JWT_LIFETIME_SECONDS,
            "iss": self._config.app_id,
        }
        try:
            return jwt.encode(payload, self._config.private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise TokenMintFailure(f"Cannot sign GitHub App JWT: {e}") from e

    def _headers(self, bearer: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {bearer}",
            "Accept": GITHUB_API_ACCEPT,
            "User-Agent": GITHUB_USER_AGENT,
        }

    def get_installation_token(self, installation_id: str) -> str:
        """Return an installation access token, minting one if needed.

        Args:
            installation_id: GitHub App installation id.

        Returns:
            Installation access token.

        Raises:
            TokenMintFailure: If installation_id is not numeric, or GitHub
                rejects the request or is unreachable.
        """
        if not re.fullmatch(INSTALLATION_ID_PATTERN, installation_id):
            raise TokenMintFailure(
                f"Invalid installation id: {installation_id!r}",
                installation_id=installation_id,
            )

        with self._cache_lock:
            cached = self._token_cache.get(installation_id)
            if cached is not None:
                token, expires_at = cached
                if time.time() < expires_at - INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS:
                    return token

        url = f"{self._base_url}/app/installations/{installation_id}/access_tokens"
        try:
            response = self._client.post(url, headers=self._headers(self.generate_jwt()))
            response.raise_for_status()
            data = response.json()
            token = data["token"]
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            hint = " (check APP_ID and PRIVATE_KEY)" if status == 401 else ""
            get_system_logger().warning(
                {
                    "event": "installation_token_mint_failed",
                    "message": f"GitHub returned {status} minting installation token{hint}",
                    "installation_id": installation_id,
                    "status_code": status,
                }
            )
            raise TokenMintFailure(
                f"GitHub returned {status} minting installation token{hint}",
                installation_id=installation_id,
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise TokenMintFailure(
                f"HTTP error minting installation token: {e}",
                installation_id=installation_id,
            ) from e
        except (ValueError, KeyError) as e:
            raise TokenMintFailure(
                f"Unexpected installation token response: {e}",
                installation_id=installation_id,
            ) from e

        expires_at = _parse_expires_at(data.get("expires_at"))
        with self._cache_lock:
            self._token_cache[installation_id] = (token, expires_at)

        get_system_logger().info(
            {
                "event": "installation_token_minted",
                "message": f"Installation token minted for installation {installation_id}",
                "installation_id": installation_id,
            }
        )
        return token

    def list_installations(self) -> list[Installation]:
        """List every installation of this App.

        Raises:
            GitHubAPIError: If the request fails.
            TokenMintFailure: If the App JWT cannot be signed.
        """
        installations: list[Installation] = []
        url: str | None = f"{self._base_url}/app/installations?per_page=100"
        headers = self._headers(self.generate_jwt())

        while url:
            try:
                response = self._client.get(url, headers=headers)
                response.raise_for_status()
                page = response.json()
            except httpx.HTTPStatusError as e:
                raise GitHubAPIError(
                    f"GitHub returned {e.response.status_code} listing installations",
                    status_code=e.response.status_code,
                ) from e
            except httpx.HTTPError as e:
                raise GitHubAPIError(f"HTTP error listing installations: {e}") from e

            installations.extend(Installation.from_api(item) for item in page)
            next_link = response.links.get("next")
            url = next_link.get("url") if next_link else None

        return installations

    def find_installations_for_user(self, login: str) -> list[Installation]:
        """Installations on the account with the given login (case-insensitive)."""
        login = login.lower()
        return [inst for inst in self.list_installations() if inst.account_login.lower() == login]


def _parse_expires_at(value: str | None) -> float:
    """Parse GitHub's ISO 8601 expires_at into epoch seconds.

    Missing or malformed values fall back to one hour from now, GitHub's
    documented installation token lifetime.
    """
    if value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
    return time.time() + 3600
