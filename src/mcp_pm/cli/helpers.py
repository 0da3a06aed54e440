"""Shared helpers for CLI commands: configuration and session manager setup."""

from __future__ import annotations

__all__ = [
    "config_option",
    "load_cli_config",
    "open_session_manager",
]

import sys
from pathlib import Path
from typing import Any, Callable

import click

from mcp_pm.config import AppConfig
from mcp_pm.exceptions import ConfigurationError
from mcp_pm.sessions.manager import SessionManager
from mcp_pm.sessions.store import create_session_store

from .styling import style_error, style_warning


def config_option(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the shared --config option (JSON file; environment when omitted)."""
    return click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="JSON config file (default: read environment variables)",
    )(func)


def load_cli_config(config_path: Path | None) -> AppConfig:
    """Load configuration from a file or the environment, exiting on error."""
    try:
        if config_path is not None:
            return AppConfig.load_from_file(config_path)
        return AppConfig.from_env()
    except FileNotFoundError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)


def open_session_manager(config: AppConfig) -> SessionManager:
    """Build a SessionManager on the configured store.

    The memory backend only sees sessions of this CLI process, so a warning
    is printed when it is selected.
    """
    if config.storage.backend == "memory":
        click.echo(
            style_warning("SESSION_STORE_URL not set; using an empty in-process store"),
            err=True,
        )
    return SessionManager(create_session_store(config.storage))
