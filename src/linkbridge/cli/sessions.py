"""Session list commands for linkbridge CLI.

These commands edit the persisted session list directly. A running server
only reads it at start-up, so changes take effect on the next restart.

Commands:
- sessions list: Show configured sessions
- sessions add: Add a session id
- sessions remove: Remove a session id (and optionally its credentials)
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from linkbridge.core.config import Settings, validate_session_id
from linkbridge.core.errors import ConfigPersistenceError, InvalidRequestError
from linkbridge.sessions.credentials import CredentialStore
from linkbridge.sessions.store import DEFAULT_DESCRIPTION, SessionConfigStore

config_path_option = click.option(
    "--config-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Session list file (default: LINKBRIDGE_CONFIG_PATH or ./sessions.config.json).",
)


def _store(config_path: Path | None) -> SessionConfigStore:
    return SessionConfigStore(config_path or Settings.from_env().config_path)


@click.group()
def sessions() -> None:
    """Manage the persisted session list."""


@sessions.command("list")
@config_path_option
def list_cmd(config_path: Path | None) -> None:
    """Show configured sessions."""
    store = _store(config_path)
    try:
        records = store.list_sync()
    except ConfigPersistenceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not records:
        click.echo("No sessions configured.")
        return
    for record in records:
        click.echo(f"{record.session_id}\t{record.description}")


@sessions.command("add")
@click.argument("session_id")
@click.option("--description", "-d", default=DEFAULT_DESCRIPTION, help="Free-form description.")
@config_path_option
def add_cmd(session_id: str, description: str, config_path: Path | None) -> None:
    """Add SESSION_ID to the session list."""
    try:
        validate_session_id(session_id)
        added = _store(config_path).add_sync(session_id, description)
    except (InvalidRequestError, ConfigPersistenceError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if added:
        click.echo(f"Session '{session_id}' added.")
    else:
        click.echo(f"Session '{session_id}' is already configured.")


@sessions.command("remove")
@click.argument("session_id")
@click.option(
    "--purge-credentials",
    is_flag=True,
    help="Also delete the session's stored credentials.",
)
@click.option(
    "--sessions-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Credential directory (default: LINKBRIDGE_SESSIONS_DIR or ./sessions).",
)
@config_path_option
def remove_cmd(
    session_id: str,
    purge_credentials: bool,
    sessions_dir: Path | None,
    config_path: Path | None,
) -> None:
    """Remove SESSION_ID from the session list."""
    try:
        validate_session_id(session_id)
        removed = _store(config_path).remove_sync(session_id)
    except (InvalidRequestError, ConfigPersistenceError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if purge_credentials:
        credentials = CredentialStore(sessions_dir or Settings.from_env().sessions_dir)
        if credentials.remove(session_id):
            click.echo(f"Credentials for '{session_id}' deleted.")

    if removed:
        click.echo(f"Session '{session_id}' removed.")
    else:
        click.echo(f"Session '{session_id}' was not configured.")
