"""Application-wide constants for mcp-pm.

Constants that define application behavior.
For settings that vary per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "SERVICE_NAME",
    "DEFAULT_APP_SLUG",
    # Sessions
    "DEFAULT_SESSION_TTL_MS",
    "SESSION_ID_BYTES",
    "MAX_SESSION_ID_ATTEMPTS",
    "PENDING_ACCESS_TOKEN",
    "PENDING_USERNAME",
    "DEFAULT_SESSION_KEY_PREFIX",
    "SESSION_ID_HEADER",
    # OAuth
    "DEFAULT_OAUTH_STATE_MAX_AGE_MS",
    "DEFAULT_OAUTH_SCOPES",
    "GITHUB_OAUTH_AUTHORIZE_URL",
    "GITHUB_OAUTH_TOKEN_URL",
    "GITHUB_WEB_URL",
    # GitHub API
    "GITHUB_API_URL",
    "GITHUB_API_ACCEPT",
    "GITHUB_USER_AGENT",
    "GITHUB_HTTP_TIMEOUT_SECONDS",
    "APP_JWT_BACKDATE_SECONDS",
    "APP_JWT_LIFETIME_SECONDS",
    "INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS",
    "INSTALLATION_ID_PATTERN",
    # Repositories
    "REPOSITORY_NAME_PATTERN",
    "GITHUB_LOGIN_PATTERN",
    "DEFAULT_REPO_GITIGNORE_TEMPLATE",
    "DEFAULT_REPO_LICENSE_TEMPLATE",
    # Webhooks
    "WEBHOOK_SIGNATURE_HEADER",
    "WEBHOOK_EVENT_HEADER",
    # Install flow
    "INSTALL_POLL_INTERVAL_SECONDS",
    # Server
    "DEFAULT_HOST",
    "DEFAULT_PORT",
]

# =============================================================================
# Application identity
# =============================================================================

APP_NAME = "mcp-pm"

# Name reported by the health endpoint
SERVICE_NAME = "mcp-project-manager"

# GitHub App slug used to build the install URL
DEFAULT_APP_SLUG = "mcp-project-manager"

# =============================================================================
# Sessions
# =============================================================================

# 30 minutes, overridable per create/update call
DEFAULT_SESSION_TTL_MS = 30 * 60 * 1000

# secrets.token_urlsafe(32) -> 256 bits of entropy
SESSION_ID_BYTES = 32

# Fresh-id collisions are practically impossible; this bounds the retry loop
MAX_SESSION_ID_ATTEMPTS = 3

# Sentinel credential for a session issued at authorize time, before the
# OAuth code exchange has completed
PENDING_ACCESS_TOKEN = "pending_oauth"
PENDING_USERNAME = "pending"

DEFAULT_SESSION_KEY_PREFIX = "mcp-pm:session:"

# Header (or query parameter) carrying the session id on API requests
SESSION_ID_HEADER = "session-id"

# =============================================================================
# OAuth
# =============================================================================

# State parameters older than this are rejected at callback time
DEFAULT_OAUTH_STATE_MAX_AGE_MS = 10 * 60 * 1000

DEFAULT_OAUTH_SCOPES: tuple[str, ...] = ("repo",)

GITHUB_WEB_URL = "https://github.com"
GITHUB_OAUTH_AUTHORIZE_URL = f"{GITHUB_WEB_URL}/login/oauth/authorize"
GITHUB_OAUTH_TOKEN_URL = f"{GITHUB_WEB_URL}/login/oauth/access_token"

# =============================================================================
# GitHub API
# =============================================================================

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_ACCEPT = "application/vnd.github+json"
GITHUB_USER_AGENT = "MCP-Project-Manager-App"
GITHUB_HTTP_TIMEOUT_SECONDS = 10

# App JWTs are backdated to tolerate clock drift; GitHub caps lifetime at 10 min
APP_JWT_BACKDATE_SECONDS = 60
APP_JWT_LIFETIME_SECONDS = 10 * 60

# Cached installation tokens are re-minted this long before GitHub expires them
INSTALLATION_TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60

# Installation ids are numeric; anything else never reaches a GitHub URL
INSTALLATION_ID_PATTERN = r"^[0-9]+$"

# =============================================================================
# Repositories
# =============================================================================

# GitHub repository names: ASCII letters, digits, "-", "_" and "."
REPOSITORY_NAME_PATTERN = r"^[A-Za-z0-9._-]{1,100}$"
GITHUB_LOGIN_PATTERN = r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$"

# Templates applied to generated project repositories
DEFAULT_REPO_GITIGNORE_TEMPLATE = "Node"
DEFAULT_REPO_LICENSE_TEMPLATE = "mit"

# =============================================================================
# Webhooks
# =============================================================================

WEBHOOK_SIGNATURE_HEADER = "X-Hub-Signature-256"
WEBHOOK_EVENT_HEADER = "X-GitHub-Event"

# =============================================================================
# Install flow
# =============================================================================

# Recommended client polling interval for installation-status
INSTALL_POLL_INTERVAL_SECONDS = 5

# =============================================================================
# Server
# =============================================================================

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
