"""Unit tests for the installation callback view."""

from __future__ import annotations

from mcp_pm.credentials.resolver import CredentialDecision
from mcp_pm.credentials.view import CallbackView, supported_features


class TestCallbackView:
    """Tests for status and feature derivation."""

    def test_both_tokens(self) -> None:
        """Given both tokens, full success with personal and org repos."""
        view = CallbackView("42", "octocat", has_user_token=True, installation_token_obtained=True)

        assert view.status == "Successful"
        assert view.decision is CredentialDecision.USE_USER_TOKEN
        assert view.features == "Personal repositories + Organization repositories"
        assert view.can_create_personal_repos is True

    def test_installation_only(self) -> None:
        """Given only an installation token, org repos only."""
        view = CallbackView("42", "unknown", has_user_token=False, installation_token_obtained=True)

        assert view.status == "Successful"
        assert view.features == "Organization repositories only"
        assert view.can_create_personal_repos is False
        assert "create_org_repo" in view.operations

    def test_user_token_only_is_partial(self) -> None:
        """Given a user token but no installation token, partial success."""
        view = CallbackView("42", "octocat", has_user_token=True, installation_token_obtained=False)

        assert view.status == "Partially Successful"
        assert view.can_create_personal_repos is True

    def test_no_tokens(self) -> None:
        """Given no tokens, limited functionality and no operations."""
        view = CallbackView("42", "unknown", has_user_token=False, installation_token_obtained=False)

        assert view.status == "Partially Successful"
        assert view.features == "Limited functionality"
        assert view.operations == ()

    def test_supported_features_for_every_decision(self) -> None:
        assert all(supported_features(decision) for decision in CredentialDecision)
