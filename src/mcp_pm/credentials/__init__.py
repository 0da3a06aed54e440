"""Credential resolution and degraded-mode policy.

- resolver: decide_credential, CredentialResolver, Operation policy table
- view: CallbackView display data for the installation callback page
"""

from mcp_pm.credentials.resolver import (
    CredentialDecision,
    CredentialResolver,
    InstallationTokenProvider,
    Operation,
    ResolvedCredential,
    decide_credential,
    is_permitted,
    permitted_operations,
)
from mcp_pm.credentials.view import CallbackView, supported_features

__all__ = [
    "CallbackView",
    "CredentialDecision",
    "CredentialResolver",
    "InstallationTokenProvider",
    "Operation",
    "ResolvedCredential",
    "decide_credential",
    "is_permitted",
    "permitted_operations",
    "supported_features",
]
