"""check-env command for mcp-pm CLI.

Reports which configuration variables are set, without printing values.
"""

from __future__ import annotations

__all__ = ["check_env"]

import json
import sys

import click

from mcp_pm.config import ENV_VARS, AppConfig
from mcp_pm.exceptions import ConfigurationError

from ..styling import style_dim, style_error, style_header, style_success, style_warning

# Variables without which a section is unusable
_REQUIRED = {"APP_ID", "PRIVATE_KEY", "GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET", "GITHUB_REDIRECT_URI"}

_SECTION_TITLES = {
    "github_app": "GitHub App",
    "oauth": "OAuth",
    "storage": "Session store",
    "session": "Sessions",
    "logging": "Logging",
}


@click.command("check-env")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def check_env(as_json: bool) -> None:
    """Check configuration environment variables.

    Exits 1 if the present values do not form a valid configuration.
    """
    status = AppConfig.env_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
    else:
        for section, names in ENV_VARS.items():
            click.echo(style_header(_SECTION_TITLES[section]))
            for name in names:
                entry = status[name]
                if entry["present"]:
                    click.echo("  " + style_success(f"{name} ({entry['length']} chars)"))
                elif name in _REQUIRED:
                    click.echo("  " + style_error(f"{name} not set"))
                else:
                    click.echo("  " + style_dim(f"- {name} not set"))
            click.echo()

    try:
        config = AppConfig.from_env()
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    if not as_json:
        if config.github_app is None:
            click.echo(style_warning("GitHub App not configured: installation tokens unavailable"))
        if config.oauth is None:
            click.echo(style_warning("OAuth not configured: personal repositories unavailable"))
