"""Shared configuration for linkbridge.

Settings are read from environment variables (``LINKBRIDGE_*``) with
sensible defaults. ``PORT`` and ``API_STATIC_TOKEN`` are still
honoured for deployments migrated from the legacy service.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from linkbridge.core.errors import InvalidRequestError

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_session_id(session_id: str | None) -> str:
    """Validate a caller-supplied session id.

    Session ids name directories on disk, so only alphanumeric characters,
    hyphens and underscores are accepted.

    Args:
        session_id: The id to check.

    Returns:
        The session id unchanged.

    Raises:
        InvalidRequestError: If the id is empty or contains other characters.
    """
    if not session_id or not _SESSION_ID_RE.match(session_id):
        raise InvalidRequestError(f"Invalid session id: {session_id!r}")
    return session_id


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    return float(value) if value else default


def _env_int(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    value = env.get(name)
    return int(value) if value else default


@dataclass
class Settings:
    """Runtime settings for the linkbridge server.

    Attributes:
        host: Interface the HTTP server binds to.
        port: Port the HTTP server listens on.
        api_token: Static bearer token required by the REST API (None disables the API).
        sessions_dir: Directory holding per-session transport credentials.
        config_path: JSON file listing the known sessions.
        log_path: Log file path.
        bridge_url: Base WebSocket URL of the transport gateway.
        drain_interval: Seconds between delivery queue drains.
        reconnect_delay: Seconds to wait before reconnecting a dropped session.
        link_grace_delay: Seconds to wait for credentials after a connection opens.
        caption_delay: Seconds between a document and its caption.
        recipient_suffix: Domain appended to bare recipient numbers.
        max_attempts: Failed sends before a task is dead-lettered (None = retry forever).
    """

    host: str = "0.0.0.0"
    port: int = 3000
    api_token: str | None = None
    sessions_dir: Path = field(default_factory=lambda: Path("sessions"))
    config_path: Path = field(default_factory=lambda: Path("sessions.config.json"))
    log_path: Path = field(default_factory=lambda: Path("linkbridge.log"))
    bridge_url: str = "ws://127.0.0.1:8787"
    drain_interval: float = 5.0
    reconnect_delay: float = 15.0
    link_grace_delay: float = 1.0
    caption_delay: float = 0.25
    recipient_suffix: str = "@s.whatsapp.net"
    max_attempts: int | None = None

    def __post_init__(self) -> None:
        """Normalize paths and URLs."""
        self.sessions_dir = Path(self.sessions_dir)
        self.config_path = Path(self.config_path)
        self.log_path = Path(self.log_path)
        self.bridge_url = self.bridge_url.rstrip("/")
        if self.max_attempts is not None and self.max_attempts <= 0:
            self.max_attempts = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to ``os.environ``).

        Returns:
            Settings with every unset variable at its default.
        """
        env = os.environ if env is None else env
        defaults = cls()
        return cls(
            host=env.get("LINKBRIDGE_HOST", defaults.host),
            port=int(env.get("PORT") or env.get("LINKBRIDGE_PORT") or defaults.port),
            api_token=env.get("LINKBRIDGE_API_TOKEN") or env.get("API_STATIC_TOKEN") or None,
            sessions_dir=Path(env.get("LINKBRIDGE_SESSIONS_DIR", str(defaults.sessions_dir))),
            config_path=Path(env.get("LINKBRIDGE_CONFIG_PATH", str(defaults.config_path))),
            log_path=Path(env.get("LINKBRIDGE_LOG_PATH", str(defaults.log_path))),
            bridge_url=env.get("LINKBRIDGE_BRIDGE_URL", defaults.bridge_url),
            drain_interval=_env_float(env, "LINKBRIDGE_DRAIN_INTERVAL", defaults.drain_interval),
            reconnect_delay=_env_float(env, "LINKBRIDGE_RECONNECT_DELAY", defaults.reconnect_delay),
            link_grace_delay=_env_float(
                env, "LINKBRIDGE_LINK_GRACE_DELAY", defaults.link_grace_delay
            ),
            caption_delay=_env_float(env, "LINKBRIDGE_CAPTION_DELAY", defaults.caption_delay),
            recipient_suffix=env.get("LINKBRIDGE_RECIPIENT_SUFFIX", defaults.recipient_suffix),
            max_attempts=_env_int(env, "LINKBRIDGE_MAX_ATTEMPTS", defaults.max_attempts),
        )
