"""Display data for the installation callback page.

The page is rendered by the API layer; this module only derives what the
page shows from the two token-presence flags, using the same policy table
as the resolver so the page can never promise more than the API allows.
"""

from __future__ import annotations

__all__ = [
    "CallbackView",
    "supported_features",
]

from dataclasses import dataclass, field

from mcp_pm.credentials.resolver import (
    CredentialDecision,
    Operation,
    decide_credential,
    permitted_operations,
)

_FEATURES = {
    CredentialDecision.USE_USER_TOKEN: "Personal repositories + Organization repositories",
    CredentialDecision.USE_INSTALLATION_TOKEN: "Organization repositories only",
    CredentialDecision.NO_CREDENTIAL: "Limited functionality",
}


def supported_features(decision: CredentialDecision) -> str:
    """Human-readable summary of what a credential decision allows."""
    return _FEATURES[decision]


@dataclass(frozen=True)
class CallbackView:
    """Template context for the installation callback page.

    Attributes:
        installation_id: Installation that was just set up.
        username: GitHub login (or "unknown" without OAuth).
        has_user_token: The OAuth exchange produced a user token.
        installation_token_obtained: An installation token was minted.
        project_name: Project the user started the flow for.
        session_id: Session created for the user token, if any.
        decision: Credential decision implied by the two flags.
        operations: Operations the decision permits, by value.
    """

    installation_id: str
    username: str
    has_user_token: bool
    installation_token_obtained: bool
    project_name: str = "mcp-project"
    session_id: str | None = None
    decision: CredentialDecision = field(init=False)
    operations: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        decision = decide_credential(self.has_user_token, self.installation_token_obtained)
        object.__setattr__(self, "decision", decision)
        object.__setattr__(
            self,
            "operations",
            tuple(op.value for op in Operation if op in permitted_operations(decision)),
        )

    @property
    def fully_successful(self) -> bool:
        """Installation succeeded end to end (installation token minted)."""
        return self.installation_token_obtained

    @property
    def status(self) -> str:
        return "Successful" if self.fully_successful else "Partially Successful"

    @property
    def features(self) -> str:
        return supported_features(self.decision)

    @property
    def can_create_personal_repos(self) -> bool:
        return Operation.CREATE_PERSONAL_REPO.value in self.operations
