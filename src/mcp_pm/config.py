"""Application configuration for mcp-pm.

Defines configuration models for the GitHub App, the OAuth client, the
session store substrate, session lifetimes and logging.

Configuration is built once at process start and passed into constructors
(create_app, SessionManager, GitHubAppClient, ...). Request handlers never
read the process environment themselves.

Example usage:
    # Build from environment variables (serverless deployments)
    config = AppConfig.from_env()

    # Or load from a JSON file
    config = AppConfig.load_from_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "ENV_VARS",
    "AppConfig",
    "GitHubAppConfig",
    "LoggingConfig",
    "OAuthConfig",
    "SessionConfig",
    "StorageConfig",
]

import json
import os
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from mcp_pm.constants import (
    DEFAULT_APP_SLUG,
    DEFAULT_OAUTH_SCOPES,
    DEFAULT_OAUTH_STATE_MAX_AGE_MS,
    DEFAULT_SESSION_KEY_PREFIX,
    DEFAULT_SESSION_TTL_MS,
    GITHUB_API_URL,
)
from mcp_pm.exceptions import ConfigurationError

# Environment variables read by AppConfig.from_env(), grouped by section.
# check-env reports presence/length of each of these (never the values).
ENV_VARS: dict[str, tuple[str, ...]] = {
    "github_app": ("APP_ID", "PRIVATE_KEY", "GITHUB_APP_SLUG", "GITHUB_API_URL", "WEBHOOK_SECRET"),
    "oauth": ("GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET", "GITHUB_REDIRECT_URI"),
    "storage": ("SESSION_STORE_URL", "SESSION_KEY_PREFIX"),
    "session": ("SESSION_TTL_MS", "OAUTH_STATE_SECRET"),
    "logging": ("LOG_LEVEL", "LOG_FILE"),
}


# =============================================================================
# GitHub App / OAuth
# =============================================================================


class GitHubAppConfig(BaseModel):
    """GitHub App credentials used to mint installation tokens.

    Attributes:
        app_id: Numeric GitHub App ID (as a string).
        private_key: App private key in PEM format. Literal "\\n" sequences
            (common when the key is stored in a single-line env var) are
            converted to newlines.
        slug: App slug, used to build the installation URL.
        api_url: GitHub REST API base URL.
        webhook_secret: Shared secret for webhook signature verification.
    """

    app_id: str = Field(min_length=1)
    private_key: str = Field(min_length=1)
    slug: str = Field(default=DEFAULT_APP_SLUG, min_length=1)
    api_url: str = Field(default=GITHUB_API_URL, pattern=r"^https?://")
    webhook_secret: str | None = None

    @field_validator("private_key")
    @classmethod
    def unescape_newlines(cls, value: str) -> str:
        return value.replace("\\n", "\n")


class OAuthConfig(BaseModel):
    """GitHub OAuth client configuration for user authorization.

    Attributes:
        client_id: OAuth client ID of the GitHub App.
        client_secret: OAuth client secret.
        redirect_uri: Callback URL registered with GitHub.
        scopes: OAuth scopes to request.
    """

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    redirect_uri: str = Field(min_length=1, pattern=r"^https?://")
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_OAUTH_SCOPES))


# =============================================================================
# Sessions
# =============================================================================


class StorageConfig(BaseModel):
    """Session store substrate selection.

    "memory" keeps sessions in process memory and is only suitable for
    single-process deployments. Multi-instance deployments must use "redis"
    so that every invocation sees the same sessions.

    Attributes:
        backend: Substrate type ("memory" or "redis").
        redis_url: Redis connection URL (required for the redis backend).
        key_prefix: Prefix applied to every session key in Redis.
    """

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str | None = None
    key_prefix: str = Field(default=DEFAULT_SESSION_KEY_PREFIX, min_length=1)

    @model_validator(mode="after")
    def require_redis_url(self) -> "StorageConfig":
        if self.backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when backend is 'redis'")
        return self


class SessionConfig(BaseModel):
    """Session lifetime settings.

    Attributes:
        default_ttl_ms: Lifetime of newly created sessions in milliseconds.
        oauth_state_max_age_ms: Maximum age of an OAuth state parameter.
        state_secret: Key for signing OAuth state parameters. Optional; see
            AppConfig.state_signing_key() for the fallback order.
    """

    default_ttl_ms: int = Field(default=DEFAULT_SESSION_TTL_MS, gt=0)
    oauth_state_max_age_ms: int = Field(default=DEFAULT_OAUTH_STATE_MAX_AGE_MS, gt=0)
    state_secret: str | None = Field(default=None, min_length=1)


# =============================================================================
# Logging
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Console (stderr) output is always enabled. When log_file is set, the
    system logger also writes JSONL there.

    Attributes:
        log_level: Minimum level for console output.
        log_file: Optional JSONL log file path.
    """

    log_level: Literal["DEBUG", "INFO", "WARNING"] = "INFO"
    log_file: str | None = None


# =============================================================================
# Application configuration
# =============================================================================


class AppConfig(BaseModel):
    """Main application configuration for mcp-pm.

    GitHub App and OAuth sections are optional so the service can start in a
    degraded mode; endpoints that need a missing section answer with a
    configuration error instead of failing at import time.

    Attributes:
        github_app: GitHub App credentials (installation tokens, webhooks).
        oauth: OAuth client configuration (user tokens).
        storage: Session store substrate.
        session: Session lifetime settings.
        logging: Logging configuration.
    """

    github_app: GitHubAppConfig | None = None
    oauth: OAuthConfig | None = None
    storage: StorageConfig = Field(default_factory=StorageConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "ignore"}

    def require_github_app(self) -> GitHubAppConfig:
        """Return the GitHub App section or raise ConfigurationError."""
        if self.github_app is None:
            raise ConfigurationError(
                "GitHub App is not configured",
                missing=["APP_ID", "PRIVATE_KEY"],
            )
        return self.github_app

    def require_oauth(self) -> OAuthConfig:
        """Return the OAuth section or raise ConfigurationError."""
        if self.oauth is None:
            raise ConfigurationError(
                "GitHub OAuth is not configured",
                missing=["GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET", "GITHUB_REDIRECT_URI"],
            )
        return self.oauth

    def state_signing_key(self) -> str:
        """Return the key that signs OAuth state parameters.

        Uses OAUTH_STATE_SECRET when set, otherwise the OAuth client secret,
        otherwise the App private key. Every instance serving the same
        deployment derives the same key, so a state issued by one instance
        verifies on another.

        Raises:
            ConfigurationError: If none of these secrets is configured.
        """
        if self.session.state_secret:
            return self.session.state_secret
        if self.oauth is not None:
            return self.oauth.client_secret
        if self.github_app is not None:
            return self.github_app.private_key
        raise ConfigurationError(
            "No secret available to sign OAuth state",
            missing=["OAUTH_STATE_SECRET"],
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build configuration from environment variables.

        A section is only populated when all of its required variables are
        present. SESSION_STORE_URL selects the Redis backend; without it,
        sessions are kept in process memory.

        Args:
            environ: Mapping to read from (defaults to os.environ).

        Returns:
            AppConfig instance.

        Raises:
            ConfigurationError: If a present value fails validation.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(name, "").strip()
            return value or None

        data: dict[str, Any] = {}

        app_id, private_key = get("APP_ID"), get("PRIVATE_KEY")
        if app_id and private_key:
            github_app: dict[str, Any] = {"app_id": app_id, "private_key": private_key}
            if get("GITHUB_APP_SLUG"):
                github_app["slug"] = get("GITHUB_APP_SLUG")
            if get("GITHUB_API_URL"):
                github_app["api_url"] = get("GITHUB_API_URL")
            if get("WEBHOOK_SECRET"):
                github_app["webhook_secret"] = get("WEBHOOK_SECRET")
            data["github_app"] = github_app

        client_id = get("GITHUB_CLIENT_ID")
        client_secret = get("GITHUB_CLIENT_SECRET")
        redirect_uri = get("GITHUB_REDIRECT_URI")
        if client_id and client_secret and redirect_uri:
            data["oauth"] = {
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
            }

        store_url = get("SESSION_STORE_URL")
        storage: dict[str, Any] = {"backend": "redis" if store_url else "memory"}
        if store_url:
            storage["redis_url"] = store_url
        if get("SESSION_KEY_PREFIX"):
            storage["key_prefix"] = get("SESSION_KEY_PREFIX")
        data["storage"] = storage

        session: dict[str, Any] = {}
        if get("SESSION_TTL_MS"):
            session["default_ttl_ms"] = get("SESSION_TTL_MS")
        if get("OAUTH_STATE_SECRET"):
            session["state_secret"] = get("OAUTH_STATE_SECRET")
        data["session"] = session

        logging_section: dict[str, Any] = {}
        log_level = get("LOG_LEVEL")
        if log_level:
            logging_section["log_level"] = log_level.upper()
        if get("LOG_FILE"):
            logging_section["log_file"] = get("LOG_FILE")
        data["logging"] = logging_section

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration from environment: {e}") from e

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from a JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ConfigurationError: If the file is not valid JSON or fails validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found at {config_path}.")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [
                f"  - {'.'.join(str(x) for x in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
            raise ConfigurationError(
                f"Invalid configuration in {config_path}:\n" + "\n".join(errors)
            ) from e

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file.

        Creates parent directories if needed. The file holds secrets, so it is
        written with owner-only permissions.

        Args:
            config_path: Path where the config JSON file should be saved.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2)
            f.write("\n")

        config_path.chmod(0o600)

    @staticmethod
    def env_status(environ: Mapping[str, str] | None = None) -> dict[str, dict[str, Any]]:
        """Report which configuration variables are set, without their values.

        Args:
            environ: Mapping to inspect (defaults to os.environ).

        Returns:
            Mapping of variable name to {"present": bool, "length": int}.
        """
        env = os.environ if environ is None else environ
        status: dict[str, dict[str, Any]] = {}
        for names in ENV_VARS.values():
            for name in names:
                value = env.get(name, "")
                status[name] = {"present": bool(value), "length": len(value)}
        return status
