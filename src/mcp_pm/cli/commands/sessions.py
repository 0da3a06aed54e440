"""Sessions command group for mcp-pm CLI.

Inspects and maintains the configured session store directly (no running
server needed). Only useful with the Redis backend.
"""

from __future__ import annotations

__all__ = ["sessions"]

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

import click

from mcp_pm.exceptions import StoreUnavailable
from mcp_pm.sessions.models import SessionRecord

from ..helpers import config_option, load_cli_config, open_session_manager
from ..styling import style_dim, style_error, style_label, style_success

T = TypeVar("T")


def _run(operation: Callable[[], T]) -> T:
    """Run a store operation, exiting with a message if the store is down."""
    try:
        return operation()
    except StoreUnavailable as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)


def _format_ms(timestamp_ms: int) -> str:
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def _short_id(session_id: str) -> str:
    return session_id[:12] + "..." if len(session_id) > 15 else session_id


def _record_summary(record: SessionRecord) -> dict[str, object]:
    """Display fields of a record. Never includes the access token."""
    return {
        "session_id": record.session_id,
        "username": record.username,
        "pending": record.is_pending,
        "installation_id": record.installation_id,
        "created_at": record.created_at,
        "expires_at": record.expires_at,
        "ip_address": record.ip_address,
        "user_agent": record.user_agent,
    }


@click.group()
def sessions() -> None:
    """Session store maintenance.

    Operates on the store selected by SESSION_STORE_URL (or --config).
    """
    pass


@sessions.command("count")
@config_option
def sessions_count(config_path: Path | None) -> None:
    """Count live sessions (sweeps expired ones first)."""
    manager = open_session_manager(load_cli_config(config_path))
    count = _run(manager.count)
    click.echo(style_label("Live sessions") + f" {count}")


@sessions.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@config_option
def sessions_list(as_json: bool, config_path: Path | None) -> None:
    """List live sessions."""
    manager = open_session_manager(load_cli_config(config_path))
    records = _run(manager.list_sessions)

    if as_json:
        click.echo(json.dumps([_record_summary(r) for r in records], indent=2))
        return

    if not records:
        click.echo(style_dim("No active sessions."))
        return

    click.echo("\n" + style_label("Active sessions") + f" {len(records)}\n")
    for record in sorted(records, key=lambda r: r.created_at):
        click.echo(f"  [{_short_id(record.session_id)}]")
        click.echo(f"    User: {'(pending OAuth)' if record.is_pending else record.username}")
        if record.installation_id:
            click.echo(f"    Installation: {record.installation_id}")
        click.echo(f"    Created: {_format_ms(record.created_at)}")
        click.echo(f"    Expires: {_format_ms(record.expires_at)}")
        click.echo()


@sessions.command("sweep")
@config_option
def sessions_sweep(config_path: Path | None) -> None:
    """Remove expired sessions."""
    manager = open_session_manager(load_cli_config(config_path))
    removed = _run(manager.sweep)
    click.echo(style_success(f"Removed {removed} expired session(s)"))


@sessions.command("show")
@click.argument("session_id")
@config_option
def sessions_show(session_id: str, config_path: Path | None) -> None:
    """Show one session (token omitted)."""
    manager = open_session_manager(load_cli_config(config_path))
    record = _run(lambda: manager.validate(session_id))
    if record is None:
        click.echo(style_error("Session not found or expired"), err=True)
        sys.exit(1)
    click.echo(json.dumps(_record_summary(record), indent=2))


@sessions.command("delete")
@click.argument("session_id")
@config_option
def sessions_delete(session_id: str, config_path: Path | None) -> None:
    """Delete one session."""
    manager = open_session_manager(load_cli_config(config_path))
    if _run(lambda: manager.delete(session_id)):
        click.echo(style_success("Session deleted"))
    else:
        click.echo(style_dim("No such session."))
