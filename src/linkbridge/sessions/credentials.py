"""Per-session transport credential files.

Credentials are opaque to linkbridge: the transport reports them through
its credentials-changed event and gets them back when a session
reconnects. Each session owns ``<sessions_dir>/<session_id>/creds.json``;
the presence of that file is what confirms a device link.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CREDENTIALS_FILE = "creds.json"


class CredentialStore:
    """File-backed storage of transport credentials."""

    def __init__(self, root: Path | str) -> None:
        """Initialize the store and create the root directory.

        Args:
            root: Directory holding one sub-directory per session.
        """
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def session_dir(self, session_id: str) -> Path:
        """Directory owned by a session."""
        return self._root / session_id

    def credentials_path(self, session_id: str) -> Path:
        """Credential file of a session."""
        return self.session_dir(session_id) / CREDENTIALS_FILE

    def exists(self, session_id: str) -> bool:
        """Check whether the transport has persisted credentials."""
        return self.credentials_path(session_id).is_file()

    def load(self, session_id: str) -> dict[str, Any] | None:
        """Load saved credentials.

        Returns:
            The credential payload, or None if nothing usable is stored.
        """
        path = self.credentials_path(session_id)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("[%s] Ignoring unreadable credentials at %s", session_id, path)
            return None
        return data if isinstance(data, dict) else None

    def save(self, session_id: str, credentials: dict[str, Any]) -> None:
        """Merge updated credentials into the stored payload."""
        path = self.credentials_path(session_id)
        current = self.load(session_id) or {}
        current.update(credentials)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(current, indent=2), encoding="utf-8")
        logger.debug("[%s] Credentials saved", session_id)

    def remove(self, session_id: str) -> bool:
        """Delete everything stored for a session.

        Returns:
            True if a directory was removed.
        """
        session_dir = self.session_dir(session_id)
        if not session_dir.exists():
            return False
        shutil.rmtree(session_dir, ignore_errors=True)
        logger.info("[%s] Session directory removed", session_id)
        return True
