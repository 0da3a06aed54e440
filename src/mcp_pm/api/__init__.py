"""HTTP API (FastAPI) for the GitHub App integration."""

from mcp_pm.api.server import create_app, create_app_from_env

__all__ = ["create_app", "create_app_from_env"]
