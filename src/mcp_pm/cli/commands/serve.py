"""Serve command for mcp-pm CLI.

Runs the HTTP API with uvicorn.
"""

from __future__ import annotations

__all__ = ["serve"]

from pathlib import Path

import click
import uvicorn

from mcp_pm.api.server import create_app
from mcp_pm.constants import DEFAULT_HOST, DEFAULT_PORT
from mcp_pm.telemetry.system_logger import configure_system_logger

from ..helpers import config_option, load_cli_config
from ..styling import style_label


@click.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Bind address")
@click.option("--port", default=DEFAULT_PORT, show_default=True, type=int, help="Bind port")
@config_option
def serve(host: str, port: int, config_path: Path | None) -> None:
    """Start the HTTP API server."""
    config = load_cli_config(config_path)
    configure_system_logger(config.logging)

    app = create_app(config)

    click.echo(style_label("Session store") + f" {config.storage.backend}")
    click.echo(style_label("Listening on") + f" http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=config.logging.log_level.lower())
