"""Persisted list of known sessions.

The list is a JSON array of ``{"sessionId": ..., "description": ...}``
records, compatible with the ``sessions.config.json`` file used by
earlier deployments. Every read-modify-write cycle holds an asyncio lock, so removals
for different sessions closing at the same time never lose an update. File
I/O runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from linkbridge.core.errors import ConfigPersistenceError

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Session created dynamically"


@dataclass(frozen=True)
class SessionRecord:
    """One persisted session entry."""

    session_id: str
    description: str = DEFAULT_DESCRIPTION

    def to_dict(self) -> dict[str, str]:
        """Convert to the on-disk representation."""
        return {"sessionId": self.session_id, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> SessionRecord:
        """Build a record from its on-disk representation."""
        return cls(
            session_id=str(data["sessionId"]),
            description=str(data.get("description") or DEFAULT_DESCRIPTION),
        )


class SessionConfigStore:
    """Ordered, serialized list of session records backed by a JSON file."""

    def __init__(self, path: Path | str) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the records. It is created on first write.
        """
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        """Location of the backing file."""
        return self._path

    def _read(self) -> list[SessionRecord]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
            if not isinstance(data, list):
                raise ValueError("expected a JSON array")
            return [SessionRecord.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigPersistenceError(f"Cannot read {self._path}: {e}") from e

    def _write(self, records: list[SessionRecord]) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps([r.to_dict() for r in records], indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise ConfigPersistenceError(f"Cannot write {self._path}: {e}") from e

    def _add_sync(self, record: SessionRecord) -> bool:
        records = self._read()
        if any(r.session_id == record.session_id for r in records):
            return False
        records.append(record)
        self._write(records)
        return True

    def _remove_sync(self, session_id: str) -> bool:
        records = self._read()
        remaining = [r for r in records if r.session_id != session_id]
        if len(remaining) == len(records):
            return False
        self._write(remaining)
        return True

    async def list(self) -> list[SessionRecord]:
        """Return all records in insertion order.

        Raises:
            ConfigPersistenceError: If the file cannot be read or parsed.
        """
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def add(self, session_id: str, description: str = DEFAULT_DESCRIPTION) -> bool:
        """Append a record unless one already exists for the id.

        Returns:
            True if a record was added, False if it was already listed.

        Raises:
            ConfigPersistenceError: If the file cannot be read or written.
        """
        async with self._lock:
            added = await asyncio.to_thread(
                self._add_sync, SessionRecord(session_id, description)
            )
        if added:
            logger.info("[%s] Session added to %s", session_id, self._path)
        return added

    async def remove(self, session_id: str) -> bool:
        """Remove the record for a session id.

        Returns:
            True if a record was removed, False if none was listed.

        Raises:
            ConfigPersistenceError: If the file cannot be read or written.
        """
        async with self._lock:
            removed = await asyncio.to_thread(self._remove_sync, session_id)
        if removed:
            logger.info("[%s] Session removed from %s", session_id, self._path)
        return removed

    # Synchronous access for the CLI, which runs outside the event loop.

    def list_sync(self) -> list[SessionRecord]:
        return self._read()

    def add_sync(self, session_id: str, description: str = DEFAULT_DESCRIPTION) -> bool:
        return self._add_sync(SessionRecord(session_id, description))

    def remove_sync(self, session_id: str) -> bool:
        return self._remove_sync(session_id)
