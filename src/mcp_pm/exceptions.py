"""Custom exceptions for mcp-pm.

Expected, recoverable outcomes (session not found, duplicate session id,
no usable credential) are reported through return values, not exceptions.
The exceptions below cover faults a caller has to handle explicitly:

Infrastructure:
    - StoreUnavailable: The session store substrate cannot be reached or written

GitHub collaborators:
    - TokenMintFailure: Installation token could not be minted
    - GitHubAPIError: Any other GitHub REST call made with App credentials failed
    - OAuthExchangeError: OAuth code exchange or user lookup failed
    - OAuthStateError: OAuth state parameter missing, malformed or expired
    - WebhookVerificationError: Webhook signature missing or invalid

Policy / setup:
    - OperationNotPermitted: Resolved credential does not allow an operation
    - ConfigurationError: Required configuration missing or invalid

Usage:
    from mcp_pm.exceptions import StoreUnavailable, TokenMintFailure
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "GitHubAPIError",
    "McpPmError",
    "OAuthExchangeError",
    "OAuthStateError",
    "OperationNotPermitted",
    "StoreUnavailable",
    "TokenMintFailure",
    "WebhookVerificationError",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp_pm.credentials.resolver import CredentialDecision, Operation


class McpPmError(Exception):
    """Base class for all mcp-pm errors."""


class StoreUnavailable(McpPmError):
    """Raised when the session store substrate fails.

    Connectivity and write faults propagate as this error so callers can tell
    "no session" apart from "cannot reach the store". Corrupt stored values
    are not reported this way; they are discarded and read as absent.

    Attributes:
        operation: Store operation that failed (e.g., "get", "put_if_absent").
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class TokenMintFailure(McpPmError):
    """Raised when an installation access token cannot be obtained.

    Attributes:
        installation_id: Installation the token was requested for.
        status_code: HTTP status returned by GitHub, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        installation_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.installation_id = installation_id
        self.status_code = status_code


class GitHubAPIError(McpPmError):
    """Raised when a GitHub REST call made with App credentials fails.

    Attributes:
        status_code: HTTP status returned by GitHub, if any.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OAuthExchangeError(McpPmError):
    """Raised when the OAuth authorization code cannot be turned into a user token."""


class OAuthStateError(McpPmError):
    """Raised when the OAuth state parameter is missing, malformed, or expired."""


class WebhookVerificationError(McpPmError):
    """Raised when a webhook delivery fails signature verification."""


class ConfigurationError(McpPmError):
    """Raised when required configuration is missing or invalid.

    Attributes:
        missing: Names of the configuration values that are missing.
    """

    def __init__(self, message: str, *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class OperationNotPermitted(McpPmError):
    """Raised when the resolved credential does not permit an operation.

    The resolver never raises this on its own; callers opt in by calling
    ResolvedCredential.require() for operations that cannot degrade.

    Attributes:
        operation: The operation that was requested.
        decision: The credential decision that was reached.
    """

    def __init__(self, operation: "Operation", decision: "CredentialDecision") -> None:
        self.operation = operation
        self.decision = decision
        super().__init__(
            f"Operation '{operation.value}' is not permitted with credential "
            f"decision '{decision.value}'"
        )
