"""Credential resolution: which bearer token to present to GitHub.

Two credential kinds exist:
- User (OAuth) token: scoped to the authorizing user; required for
  personal-repository operations.
- Installation token: scoped to a GitHub App installation; minted on demand
  from App credentials and not tied to any user.

decide_credential() is the business rule: a user token wins whenever one is
present, otherwise an installation token is used, otherwise nothing is.

The degraded-mode policy (which operations remain allowed for each outcome)
is enforced here rather than left to page copy:

    USE_USER_TOKEN          -> personal repo, org repo, read installation
    USE_INSTALLATION_TOKEN  -> org repo, read installation
    NO_CREDENTIAL           -> nothing

The resolver is read-only: it never writes sessions or caches derived state.
"""

from __future__ import annotations

__all__ = [
    "CredentialDecision",
    "CredentialResolver",
    "InstallationTokenProvider",
    "Operation",
    "ResolvedCredential",
    "decide_credential",
    "is_permitted",
    "permitted_operations",
]

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from mcp_pm.exceptions import OperationNotPermitted, TokenMintFailure
from mcp_pm.telemetry.session_events import hash_sensitive_id
from mcp_pm.telemetry.system_logger import get_system_logger

if TYPE_CHECKING:
    from mcp_pm.sessions.manager import SessionManager


class CredentialDecision(str, Enum):
    """Outcome of credential resolution."""

    USE_USER_TOKEN = "use_user_token"
    USE_INSTALLATION_TOKEN = "use_installation_token"
    NO_CREDENTIAL = "no_credential"


class Operation(str, Enum):
    """GitHub operations whose permission depends on the credential kind."""

    CREATE_PERSONAL_REPO = "create_personal_repo"
    CREATE_ORG_REPO = "create_org_repo"
    READ_INSTALLATION = "read_installation"


_PERMITTED: dict[CredentialDecision, frozenset[Operation]] = {
    CredentialDecision.USE_USER_TOKEN: frozenset(Operation),
    CredentialDecision.USE_INSTALLATION_TOKEN: frozenset(
        {Operation.CREATE_ORG_REPO, Operation.READ_INSTALLATION}
    ),
    CredentialDecision.NO_CREDENTIAL: frozenset(),
}


def decide_credential(has_user_token: bool, has_installation_token: bool) -> CredentialDecision:
    """Pick the credential kind to present.

    Args:
        has_user_token: A live session carries a usable user token.
        has_installation_token: An installation token is available.

    Returns:
        The credential decision. A user token is preferred when both exist.
    """
    if has_user_token:
        return CredentialDecision.USE_USER_TOKEN
    if has_installation_token:
        return CredentialDecision.USE_INSTALLATION_TOKEN
    return CredentialDecision.NO_CREDENTIAL


def permitted_operations(decision: CredentialDecision) -> frozenset[Operation]:
    """Operations allowed for a credential decision."""
    return _PERMITTED[decision]


def is_permitted(decision: CredentialDecision, operation: Operation) -> bool:
    """Check whether an operation is allowed for a credential decision."""
    return operation in _PERMITTED[decision]


class InstallationTokenProvider(Protocol):
    """Mints installation-scoped tokens (implemented by GitHubAppClient)."""

    def get_installation_token(self, installation_id: str) -> str:
        """Return a bearer token for the installation.

        Raises:
            TokenMintFailure: If the token cannot be minted.
        """
        ...


@dataclass(frozen=True)
class ResolvedCredential:
    """Result of resolving credentials for a request.

    Attributes:
        decision: Which credential kind to use.
        token: The bearer token for that kind, None for NO_CREDENTIAL.
        username: GitHub login from the session, if a non-pending one exists.
        installation_id: Installation considered during resolution.
        installation_token_error: Why minting failed, if it was attempted and failed.
    """

    decision: CredentialDecision
    token: str | None = None
    username: str | None = None
    installation_id: str | None = None
    installation_token_error: str | None = None

    @property
    def permitted_operations(self) -> frozenset[Operation]:
        return permitted_operations(self.decision)

    def can(self, operation: Operation) -> bool:
        """Check whether this credential allows operation."""
        return is_permitted(self.decision, operation)

    def require(self, operation: Operation) -> str:
        """Return the token for an operation that cannot degrade.

        Raises:
            OperationNotPermitted: If the decision does not allow the operation.
        """
        if not self.can(operation) or self.token is None:
            raise OperationNotPermitted(operation, self.decision)
        return self.token


class CredentialResolver:
    """Resolve the credential for a request from a session and/or installation.

    Args:
        session_manager: Used to validate the session id (read-only).
        token_provider: Mints installation tokens. Without one, installation
            fallback is unavailable.
    """

    def __init__(
        self,
        session_manager: "SessionManager",
        token_provider: InstallationTokenProvider | None = None,
    ) -> None:
        self._sessions = session_manager
        self._token_provider = token_provider

    def resolve(
        self,
        session_id: str | None = None,
        installation_id: str | None = None,
    ) -> ResolvedCredential:
        """Resolve which credential to use.

        A live, non-pending session with a token wins and no installation
        token is minted. Otherwise an installation token is minted for
        installation_id (or the session's installation); a mint failure
        degrades to NO_CREDENTIAL rather than raising.

        Args:
            session_id: Session id presented by the caller, if any.
            installation_id: Installation to fall back to, if any.

        Returns:
            ResolvedCredential.

        Raises:
            StoreUnavailable: If the session store cannot be reached.
        """
        record = self._sessions.validate(session_id) if session_id else None

        username = None
        if record is not None and not record.is_pending:
            username = record.username
        if installation_id is None and record is not None:
            installation_id = record.installation_id

        if record is not None and record.has_user_token:
            return ResolvedCredential(
                decision=decide_credential(True, False),
                token=record.access_token,
                username=username,
                installation_id=installation_id,
            )

        installation_token: str | None = None
        error: str | None = None
        if installation_id and self._token_provider is not None:
            try:
                installation_token = self._token_provider.get_installation_token(installation_id)
            except TokenMintFailure as e:
                error = str(e)
                get_system_logger().warning(
                    {
                        "event": "installation_token_unavailable",
                        "message": f"Falling back without installation token: {e}",
                        "installation_id": installation_id,
                        "session_id": hash_sensitive_id(session_id) if session_id else None,
                    }
                )

        decision = decide_credential(False, installation_token is not None)
        return ResolvedCredential(
            decision=decision,
            token=installation_token,
            username=username,
            installation_id=installation_id,
            installation_token_error=error,
        )
