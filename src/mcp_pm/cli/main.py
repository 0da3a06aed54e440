"""Main CLI entry point for mcp-pm.

Defines the CLI group and registers all subcommands.

Commands:
    serve      - Run the HTTP API server
    check-env  - Report which configuration variables are set
    sessions   - Session store maintenance (count, list, sweep, show, delete)

Subcommand help:
    mcp-pm COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from mcp_pm import __version__

from .commands.env import check_env
from .commands.serve import serve
from .commands.sessions import sessions


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  export APP_ID=... PRIVATE_KEY="$(cat app.pem)"
  export GITHUB_CLIENT_ID=... GITHUB_CLIENT_SECRET=... GITHUB_REDIRECT_URI=...
  export SESSION_STORE_URL=redis://localhost:6379/0
  mcp-pm check-env                 Verify configuration
  mcp-pm serve --port 3000         Start the API

Session maintenance (Redis backend):
  mcp-pm sessions count
  mcp-pm sessions sweep
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """mcp-pm: GitHub App session and credential service."""
    if version:
        click.echo(f"mcp-pm {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(check_env)
cli.add_command(serve)
cli.add_command(sessions)


def main() -> None:
    """CLI entry point."""
    cli()
