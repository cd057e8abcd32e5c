"""Tests for the persisted session list."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from linkbridge.core.errors import ConfigPersistenceError
from linkbridge.sessions.store import DEFAULT_DESCRIPTION, SessionConfigStore, SessionRecord


class TestSessionConfigStore:
    """Tests for SessionConfigStore."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """Should treat a missing file as an empty list."""
        store = SessionConfigStore(tmp_path / "missing.json")

        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_add_if_absent(self, store: SessionConfigStore) -> None:
        """Should add a record once and report duplicates."""
        assert await store.add("s1", "First") is True
        assert await store.add("s1", "Again") is False

        assert await store.list() == [SessionRecord("s1", "First")]

    @pytest.mark.asyncio
    async def test_preserves_insertion_order(self, store: SessionConfigStore) -> None:
        """Should list records in the order they were added."""
        for session_id in ("c", "a", "b"):
            await store.add(session_id)

        assert [r.session_id for r in await store.list()] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_remove(self, store: SessionConfigStore) -> None:
        """Should remove a listed id and report unknown ones."""
        await store.add("s1")
        await store.add("s2")

        assert await store.remove("s1") is True
        assert await store.remove("s1") is False
        assert [r.session_id for r in await store.list()] == ["s2"]

    @pytest.mark.asyncio
    async def test_concurrent_removals_are_serialized(self, store: SessionConfigStore) -> None:
        """Should not lose updates when many removals run together."""
        ids = [f"s{i}" for i in range(20)]
        for session_id in ids:
            await store.add(session_id)

        results = await asyncio.gather(*(store.remove(s) for s in ids))

        assert all(results)
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_file_format(self, store: SessionConfigStore) -> None:
        """Should write sessionId/description records."""
        await store.add("s1")

        data = json.loads(store.path.read_text(encoding="utf-8"))

        assert data == [{"sessionId": "s1", "description": DEFAULT_DESCRIPTION}]

    @pytest.mark.asyncio
    async def test_reads_existing_file(self, tmp_path: Path) -> None:
        """Should load records written by an earlier deployment."""
        path = tmp_path / "sessions.config.json"
        path.write_text(json.dumps([{"sessionId": "legacy"}]), encoding="utf-8")

        records = await SessionConfigStore(path).list()

        assert records == [SessionRecord("legacy", DEFAULT_DESCRIPTION)]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, store: SessionConfigStore) -> None:
        """Should report unreadable content as a persistence error."""
        store.path.write_text('{"sessionId": "s1"}', encoding="utf-8")

        with pytest.raises(ConfigPersistenceError):
            await store.list()

    def test_sync_access(self, store: SessionConfigStore) -> None:
        """Should offer the same operations outside the event loop."""
        assert store.add_sync("s1") is True
        assert [r.session_id for r in store.list_sync()] == ["s1"]
        assert store.remove_sync("s1") is True
        assert store.list_sync() == []
