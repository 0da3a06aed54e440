"""Unit tests for the webhook route."""

from __future__ import annotations

import json

from fastapi.testclient import TestClient

from mcp_pm.github.webhooks import compute_signature
from mcp_pm.sessions.manager import SessionManager


def _post(api: TestClient, payload: object, event: str = "installation", secret: str = "whsec"):
    body = json.dumps(payload).encode()
    return api.post(
        "/api/github/webhooks",
        content=body,
        headers={
            "X-GitHub-Event": event,
            "X-Hub-Signature-256": compute_signature(secret, body),
            "Content-Type": "application/json",
        },
    )


class TestReceiveWebhook:
    """Tests for POST /api/github/webhooks."""

    def test_uninstall_removes_sessions(self, api: TestClient, app_manager: SessionManager) -> None:
        """Given a signed installation.deleted delivery, sessions for it are removed."""
        app_manager.create("gho_user", "octocat", installation_id="42")

        response = _post(api, {"action": "deleted", "installation": {"id": 42, "account": {"login": "octocat"}}})

        assert response.status_code == 200
        assert response.json() == {
            "event": "installation",
            "action": "deleted",
            "handled": True,
            "sessions_removed": 1,
        }
        assert app_manager.count() == 0

    def test_bad_signature(self, api: TestClient, app_manager: SessionManager) -> None:
        """Given a wrong signature, returns 401 and touches nothing."""
        app_manager.create("gho_user", "octocat", installation_id="42")

        response = _post(api, {"action": "deleted", "installation": {"id": 42}}, secret="wrong")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "WEBHOOK_SIGNATURE_INVALID"
        assert app_manager.count() == 1

    def test_unhandled_event(self, api: TestClient) -> None:
        response = _post(api, {"zen": "Keep it simple"}, event="ping")

        assert response.status_code == 200
        assert response.json()["handled"] is False

    def test_non_object_payload(self, api: TestClient) -> None:
        response = _post(api, ["not", "an", "object"])

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "WEBHOOK_PAYLOAD_INVALID"

    def test_secret_not_configured(self, api: TestClient, api_app) -> None:
        """Given no webhook secret, returns 503 CONFIG_MISSING."""
        config = api_app.state.config
        api_app.state.config = config.model_copy(
            update={"github_app": config.github_app.model_copy(update={"webhook_secret": None})}
        )

        response = _post(api, {"action": "created"})

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "CONFIG_MISSING"
