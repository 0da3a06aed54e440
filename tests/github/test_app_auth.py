"""Unit tests for GitHubAppClient (App JWT and installation tokens)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from mcp_pm.config import GitHubAppConfig
from mcp_pm.exceptions import GitHubAPIError, TokenMintFailure
from mcp_pm.github.app_auth import GitHubAppClient, Installation


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="module")
def rsa_key() -> rsa.RSAPrivateKey:
    """Generate an RSA key for signing App JWTs."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def app_config(rsa_key: rsa.RSAPrivateKey) -> GitHubAppConfig:
    pem = rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    return GitHubAppConfig(app_id="12345", private_key=pem, api_url="https://api.github.test")


@pytest.fixture
def http_client() -> MagicMock:
    """Create a mock httpx client."""
    return MagicMock(spec=httpx.Client)


@pytest.fixture
def client(app_config: GitHubAppConfig, http_client: MagicMock) -> GitHubAppClient:
    return GitHubAppClient(app_config, http_client=http_client)


def _response(status_code: int, json_data: object, links: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.links = links or {}
    if status_code >= 400:
        request = httpx.Request("GET", "https://api.github.test")
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=request, response=httpx.Response(status_code, request=request)
        )
    return response


def _token_payload(token: str = "ghs_abc", minutes: int = 60) -> dict[str, str]:
    expires = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return {"token": token, "expires_at": expires.strftime("%Y-%m-%dT%H:%M:%SZ")}


# =============================================================================
# Tests: JWT
# =============================================================================


class TestGenerateJwt:
    """Tests for generate_jwt()."""

    def test_claims(self, client: GitHubAppClient, rsa_key: rsa.RSAPrivateKey) -> None:
        """Given a valid key, JWT is RS256 with iss and a backdated iat."""
        token = client.generate_jwt()

        claims = jwt.decode(token, rsa_key.public_key(), algorithms=["RS256"])
        assert claims["iss"] == "12345"
        assert claims["exp"] - claims["iat"] == 11 * 60

    def test_malformed_key(self, http_client: MagicMock) -> None:
        """Given an unusable key, raises TokenMintFailure."""
        client = GitHubAppClient(GitHubAppConfig(app_id="1", private_key="not a pem"), http_client=http_client)

        with pytest.raises(TokenMintFailure):
            client.generate_jwt()


# =============================================================================
# Tests: installation tokens
# =============================================================================


class TestGetInstallationToken:
    """Tests for get_installation_token()."""

    def test_mints_token(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        """Given GitHub returns a token, it is returned."""
        http_client.post.return_value = _response(201, _token_payload())

        assert client.get_installation_token("42") == "ghs_abc"
        url = http_client.post.call_args.args[0]
        assert url == "https://api.github.test/app/installations/42/access_tokens"
        assert http_client.post.call_args.kwargs["headers"]["Authorization"].startswith("Bearer ")

    def test_cached_until_refresh_margin(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        """Given a fresh cached token, no second request is made."""
        http_client.post.return_value = _response(201, _token_payload())

        client.get_installation_token("42")
        client.get_installation_token("42")

        assert http_client.post.call_count == 1

    def test_near_expiry_is_reminted(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        """Given a token expiring within the refresh margin, a new one is minted."""
        http_client.post.side_effect = [
            _response(201, _token_payload("ghs_old", minutes=2)),
            _response(201, _token_payload("ghs_new")),
        ]

        client.get_installation_token("42")

        assert client.get_installation_token("42") == "ghs_new"

    def test_unauthorized_hint(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        """Given a 401, raises TokenMintFailure pointing at the credentials."""
        http_client.post.return_value = _response(401, {"message": "Bad credentials"})

        with pytest.raises(TokenMintFailure, match="APP_ID") as exc_info:
            client.get_installation_token("42")

        assert exc_info.value.status_code == 401
        assert exc_info.value.installation_id == "42"

    def test_network_error(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        http_client.post.side_effect = httpx.ConnectError("unreachable")

        with pytest.raises(TokenMintFailure):
            client.get_installation_token("42")

    def test_response_without_token(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        http_client.post.return_value = _response(201, {"expires_at": None})

        with pytest.raises(TokenMintFailure):
            client.get_installation_token("42")

    @pytest.mark.parametrize("installation_id", ["", "../../user", "42/x", "42\n", "\u0664\u0662"])
    def test_non_numeric_id_never_sent(
        self, client: GitHubAppClient, http_client: MagicMock, installation_id: str
    ) -> None:
        """Given an id that is not ASCII digits, raises without building a URL from it."""
        with pytest.raises(TokenMintFailure, match="Invalid installation id"):
            client.get_installation_token(installation_id)

        http_client.post.assert_not_called()


# =============================================================================
# Tests: installations
# =============================================================================


INSTALLATION_ALICE = {
    "id": 1,
    "account": {"login": "Alice", "type": "User"},
    "repository_selection": "all",
    "permissions": {"contents": "write", "administration": "write"},
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-01-02T00:00:00Z",
}
INSTALLATION_ORG = {"id": 2, "account": {"login": "acme", "type": "Organization"}}


class TestInstallations:
    """Tests for list_installations() and find_installations_for_user()."""

    def test_from_api(self) -> None:
        installation = Installation.from_api(INSTALLATION_ALICE)

        assert installation.id == "1"
        assert installation.account_login == "Alice"
        assert installation.permissions == ["administration", "contents"]

    def test_follows_pagination(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        """Given a next link, the second page is fetched."""
        http_client.get.side_effect = [
            _response(200, [INSTALLATION_ALICE], links={"next": {"url": "https://api.github.test/page2"}}),
            _response(200, [INSTALLATION_ORG]),
        ]

        installations = client.list_installations()

        assert [i.id for i in installations] == ["1", "2"]
        assert http_client.get.call_args.args[0] == "https://api.github.test/page2"

    def test_find_for_user_case_insensitive(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        http_client.get.return_value = _response(200, [INSTALLATION_ALICE, INSTALLATION_ORG])

        assert [i.id for i in client.find_installations_for_user("alice")] == ["1"]

    def test_api_error(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        http_client.get.return_value = _response(500, {})

        with pytest.raises(GitHubAPIError) as exc_info:
            client.list_installations()

        assert exc_info.value.status_code == 500


class TestClientLifecycle:
    """Tests for client ownership."""

    def test_injected_client_not_closed(self, client: GitHubAppClient, http_client: MagicMock) -> None:
        client.close()

        http_client.close.assert_not_called()
