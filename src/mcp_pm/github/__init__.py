"""GitHub collaborators.

- app_auth: App JWT signing, installation tokens, installation listing
- oauth: OAuth web flow, signed state parameter, install URL
- repositories: repository creation and file commits
- webhooks: signature verification and installation event dispatch
"""

from mcp_pm.github.app_auth import GitHubAppClient, Installation
from mcp_pm.github.oauth import OAuthClient, OAuthIdentity, OAuthState, build_install_url
from mcp_pm.github.repositories import Repository, RepositoryClient, RepositoryFile
from mcp_pm.github.webhooks import WebhookDispatcher, WebhookResult, verify_signature

__all__ = [
    "GitHubAppClient",
    "Installation",
    "OAuthClient",
    "OAuthIdentity",
    "OAuthState",
    "Repository",
    "RepositoryClient",
    "RepositoryFile",
    "WebhookDispatcher",
    "WebhookResult",
    "build_install_url",
    "verify_signature",
]
