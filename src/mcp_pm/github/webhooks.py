"""GitHub webhook verification and installation-lifecycle dispatch.

Only installation events touch the session layer:
- installation.created: logged
- installation.deleted: every session created for the installation is removed

Other events are acknowledged and ignored.
"""

from __future__ import annotations

__all__ = [
    "WebhookDispatcher",
    "WebhookResult",
    "compute_signature",
    "verify_signature",
]

import hashlib
import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mcp_pm.exceptions import WebhookVerificationError
from mcp_pm.telemetry.system_logger import get_system_logger

if TYPE_CHECKING:
    from mcp_pm.sessions.manager import SessionManager


def compute_signature(secret: str, body: bytes) -> str:
    """X-Hub-Signature-256 value for body ("sha256=<hex>")."""
    digest = hmac.new(secret.encode("utf-8"), msg=body, digestmod=hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> None:
    """Verify a delivery's HMAC signature in constant time.

    Raises:
        WebhookVerificationError: If the header is missing, malformed, or wrong.
    """
    if not signature_header:
        raise WebhookVerificationError("Missing webhook signature")
    if not signature_header.startswith("sha256="):
        raise WebhookVerificationError("Unsupported webhook signature format")

    if not hmac.compare_digest(signature_header, compute_signature(secret, body)):
        raise WebhookVerificationError("Webhook signature mismatch")


@dataclass(frozen=True)
class WebhookResult:
    """What a delivery did."""

    event: str
    action: str | None
    handled: bool
    sessions_removed: int = 0


class WebhookDispatcher:
    """Route verified webhook deliveries to session-layer hooks."""

    def __init__(self, session_manager: "SessionManager") -> None:
        self._sessions = session_manager

    def dispatch(self, event: str, payload: dict[str, Any]) -> WebhookResult:
        """Handle one delivery.

        Args:
            event: X-GitHub-Event header value.
            payload: Parsed JSON body.

        Returns:
            WebhookResult describing the outcome.

        Raises:
            StoreUnavailable: If session cleanup cannot reach the store.
        """
        action = payload.get("action")
        if event != "installation":
            return WebhookResult(event=event, action=action, handled=False)

        installation = payload.get("installation") or {}
        installation_id = str(installation.get("id", ""))
        account = (installation.get("account") or {}).get("login", "unknown")
        logger = get_system_logger()

        if action == "created":
            logger.info(
                {
                    "event": "installation_created",
                    "message": f"App installed for {account}",
                    "installation_id": installation_id,
                    "account": account,
                }
            )
            return WebhookResult(event=event, action=action, handled=True)

        if action == "deleted" and installation_id:
            removed = self._sessions.delete_for_installation(installation_id)
            logger.info(
                {
                    "event": "installation_deleted",
                    "message": f"App uninstalled for {account}",
                    "installation_id": installation_id,
                    "account": account,
                    "sessions_removed": removed,
                }
            )
            return WebhookResult(event=event, action=action, handled=True, sessions_removed=removed)

        return WebhookResult(event=event, action=action, handled=False)
