"""Server command for linkbridge CLI.

Commands:
- serve: Run the HTTP/WebSocket server
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import click

from linkbridge.core.config import Settings


@click.command()
@click.option(
    "--host",
    default=None,
    help="Interface to bind (default: LINKBRIDGE_HOST or 0.0.0.0).",
)
@click.option("--port", "-p", type=int, default=None, help="Port (default: PORT or 3000).")
@click.option(
    "--bridge-url",
    default=None,
    help="Gateway WebSocket URL (default: LINKBRIDGE_BRIDGE_URL).",
)
@click.option(
    "--config-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Session list file (default: LINKBRIDGE_CONFIG_PATH or ./sessions.config.json).",
)
@click.option(
    "--sessions-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Credential directory (default: LINKBRIDGE_SESSIONS_DIR or ./sessions).",
)
def serve(
    host: str | None,
    port: int | None,
    bridge_url: str | None,
    config_path: Path | None,
    sessions_dir: Path | None,
) -> None:
    """Run the linkbridge server.

    Settings are read from the environment (a .env file in the working
    directory is loaded first); options override them.

    Examples:

        # Use environment defaults
        linkbridge serve

        # Custom port and gateway
        linkbridge serve --port 8080 --bridge-url ws://gateway:8787
    """
    import uvicorn

    from linkbridge.server.app import build_services, create_app, setup_logging

    settings = _resolve_settings(host, port, bridge_url, config_path, sessions_dir)
    setup_logging(settings.log_path)
    if not settings.api_token:
        click.echo(
            "Warning: no API token configured (LINKBRIDGE_API_TOKEN); REST API disabled.",
            err=True,
        )

    app = create_app(build_services(settings))
    uvicorn.run(app, host=settings.host, port=settings.port)


def _resolve_settings(
    host: str | None,
    port: int | None,
    bridge_url: str | None,
    config_path: Path | None,
    sessions_dir: Path | None,
) -> Settings:
    settings = Settings.from_env()
    overrides = {
        "host": host,
        "port": port,
        "bridge_url": bridge_url,
        "config_path": config_path,
        "sessions_dir": sessions_dir,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})
