"""Command-line interface for linkbridge.

This module provides the main CLI entry point and assembles all commands.

Commands:
- serve: Run the server
- sessions: Manage the persisted session list
"""

from __future__ import annotations

import click
from dotenv import find_dotenv, load_dotenv

from linkbridge.cli.serve import serve
from linkbridge.cli.sessions import sessions


@click.group()
@click.version_option(package_name="linkbridge")
def cli() -> None:
    """LinkBridge - linked-device session relay and document delivery."""
    load_dotenv(find_dotenv(usecwd=True))


cli.add_command(serve)
cli.add_command(sessions)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
