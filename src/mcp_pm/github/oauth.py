"""GitHub OAuth (user authorization) and installation URLs.

Flow:
1. /api/auth/authorize issues a pending session and an OAuthState that
   carries its id, then redirects the user to GitHub.
2. GitHub redirects back with ?code=...&state=...
3. OAuthState.decode() checks the state is signed, well formed and fresh, the code
   is exchanged for a user token, and the pending session is updated.

The state is "<payload>.<signature>": URL-safe base64 of a small JSON
document followed by its HMAC-SHA256 under the deployment's state signing
key (AppConfig.state_signing_key()). A state whose signature does not
verify is rejected before any of its fields are trusted.
"""

from __future__ import annotations

__all__ = [
    "OAuthClient",
    "OAuthIdentity",
    "OAuthState",
    "build_install_url",
]

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, Field, ValidationError

from mcp_pm.config import OAuthConfig
from mcp_pm.constants import (
    GITHUB_API_ACCEPT,
    GITHUB_API_URL,
    GITHUB_HTTP_TIMEOUT_SECONDS,
    GITHUB_OAUTH_AUTHORIZE_URL,
    GITHUB_OAUTH_TOKEN_URL,
    GITHUB_USER_AGENT,
    GITHUB_WEB_URL,
)
from mcp_pm.exceptions import OAuthExchangeError, OAuthStateError


class OAuthState(BaseModel):
    """Correlation data carried through GitHub's redirect.

    Attributes:
        session_id: Pending session issued at authorize time.
        action: What the user started ("create_repo", "install").
        project_name: Project the flow was started for.
        request_id: Client correlation id (install polling).
        issued_at: Issue time (ms epoch).
    """

    session_id: str | None = None
    action: str = "create_repo"
    project_name: str = "mcp-project"
    request_id: str | None = None
    issued_at: int = Field(ge=0)

    model_config = {"frozen": True, "extra": "ignore"}

    def encode(self, key: str) -> str:
        """Encode as unpadded URL-safe base64 and sign with key."""
        payload = _b64encode(self.model_dump_json(exclude_none=True).encode("utf-8"))
        return f"{payload}.{_sign(payload, key)}"

    @classmethod
    def decode(cls, value: str | None, now_ms: int, max_age_ms: int, key: str) -> "OAuthState":
        """Verify the signature, decode, and check freshness.

        Args:
            value: The state query parameter.
            now_ms: Current time (ms epoch).
            max_age_ms: Maximum accepted age.
            key: State signing key.

        Returns:
            The decoded state.

        Raises:
            OAuthStateError: If the state is missing, malformed, forged or expired.
        """
        if not value:
            raise OAuthStateError("Missing state parameter")

        payload, _, signature = value.rpartition(".")
        expected = _sign(payload, key)
        if not payload or not hmac.compare_digest(signature.encode("utf-8"), expected.encode("ascii")):
            raise OAuthStateError("Invalid state parameter")

        padded = payload + "=" * (-len(payload) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
            state = cls.model_validate(json.loads(raw))
        except (binascii.Error, UnicodeError, ValueError, ValidationError) as e:
            raise OAuthStateError("Invalid state parameter") from e

        if now_ms - state.issued_at > max_age_ms:
            raise OAuthStateError("State parameter has expired")
        return state


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _sign(payload: str, key: str) -> str:
    digest = hmac.new(key.encode("utf-8"), payload.encode("ascii", "replace"), hashlib.sha256).digest()
    return _b64encode(digest)


@dataclass(frozen=True)
class OAuthIdentity:
    """Result of a successful code exchange."""

    access_token: str
    username: str


def build_install_url(slug: str, state: str) -> str:
    """URL that installs the App and requests user authorization in one step."""
    query = urlencode({"state": state, "request_user_authorization": "true"})
    return f"{GITHUB_WEB_URL}/apps/{slug}/installations/new?{query}"


class OAuthClient:
    """GitHub OAuth web-flow client.

    Usage:
        client = OAuthClient(config.require_oauth())
        url = client.build_authorize_url(state.encode())
        identity = client.exchange_code(code, state_param)
    """

    def __init__(
        self,
        config: OAuthConfig,
        http_client: httpx.Client | None = None,
        api_url: str = GITHUB_API_URL,
    ) -> None:
        """Initialize the OAuth client.

        Args:
            config: OAuth client configuration.
            http_client: Optional httpx client (for testing).
            api_url: GitHub REST API base URL (user lookup).
        """
        self._config = config
        self._client = http_client or httpx.Client(timeout=GITHUB_HTTP_TIMEOUT_SECONDS)
        self._owns_client = http_client is None
        self._api_url = api_url.rstrip("/")

    def __enter__(self) -> "OAuthClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            self._client.close()

    def build_authorize_url(self, state: str) -> str:
        """GitHub authorize URL for the configured client and scopes."""
        query = urlencode(
            {
                "client_id": self._config.client_id,
                "redirect_uri": self._config.redirect_uri,
                "scope": " ".join(self._config.scopes),
                "state": state,
            }
        )
        return f"{GITHUB_OAUTH_AUTHORIZE_URL}?{query}"

    def exchange_code(self, code: str, state: str | None = None) -> OAuthIdentity:
        """Exchange an authorization code for a user token and resolve the login.

        Args:
            code: Authorization code from the callback.
            state: State parameter echoed back to GitHub.

        Returns:
            OAuthIdentity with the user access token and GitHub login.

        Raises:
            OAuthExchangeError: If the exchange or the user lookup fails.
        """
        payload = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "code": code,
        }
        if state:
            payload["state"] = state

        try:
            response = self._client.post(
                GITHUB_OAUTH_TOKEN_URL,
                json=payload,
                headers={"Accept": "application/json", "User-Agent": GITHUB_USER_AGENT},
            )
            response.raise_for_status()
            token_data = response.json()
        except httpx.HTTPStatusError as e:
            raise OAuthExchangeError(
                f"Failed to exchange code: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise OAuthExchangeError(f"HTTP error exchanging code: {e}") from e
        except ValueError as e:
            raise OAuthExchangeError("Token endpoint returned invalid JSON") from e

        # GitHub reports OAuth errors with HTTP 200
        if token_data.get("error"):
            raise OAuthExchangeError(
                f"OAuth error: {token_data.get('error_description') or token_data['error']}"
            )

        access_token = token_data.get("access_token")
        if not access_token:
            raise OAuthExchangeError("Token endpoint returned no access_token")

        try:
            user_response = self._client.get(
                f"{self._api_url}/user",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": GITHUB_API_ACCEPT,
                    "User-Agent": GITHUB_USER_AGENT,
                },
            )
            user_response.raise_for_status()
            login = user_response.json().get("login")
        except httpx.HTTPStatusError as e:
            raise OAuthExchangeError(
                f"Failed to get user info: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise OAuthExchangeError(f"HTTP error getting user info: {e}") from e
        except ValueError as e:
            raise OAuthExchangeError("User endpoint returned invalid JSON") from e

        if not login:
            raise OAuthExchangeError("User endpoint returned no login")

        return OAuthIdentity(access_token=access_token, username=login)
