"""Tests for the REST API."""

from __future__ import annotations

import base64
from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from linkbridge.core.config import Settings
from linkbridge.server.app import Services, build_services, create_app
from tests.fakes import FakeProvider

TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}
PDF_B64 = base64.b64encode(b"%PDF-1.4 test").decode("ascii")


def make_settings(tmp_path: Path, api_token: str | None = TOKEN) -> Settings:
    return Settings(
        api_token=api_token,
        sessions_dir=tmp_path / "sessions",
        config_path=tmp_path / "sessions.config.json",
        log_path=tmp_path / "linkbridge.log",
        drain_interval=60,
        reconnect_delay=60,
        link_grace_delay=0.01,
    )


@pytest.fixture
def services(tmp_path: Path, provider: FakeProvider) -> Services:
    return build_services(make_settings(tmp_path), provider=provider)


@pytest.fixture
def client(services: Services) -> Generator[TestClient, None, None]:
    with TestClient(create_app(services)) as client:
        yield client


class TestHealth:
    """Tests for health endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Should report counts without authentication."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "sessions": 0, "queued": 0}


class TestAuth:
    """Tests for bearer token authentication."""

    def test_missing_token(self, client: TestClient) -> None:
        """Should return 401 without a token."""
        response = client.get("/api/sessions")

        assert response.status_code == 401

    def test_wrong_token(self, client: TestClient) -> None:
        """Should return 403 for an invalid token."""
        response = client.get("/api/sessions", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 403

    def test_unconfigured_token(self, tmp_path: Path, provider: FakeProvider) -> None:
        """Should refuse every API call when no token is configured."""
        services = build_services(make_settings(tmp_path, api_token=None), provider=provider)
        with TestClient(create_app(services)) as client:
            response = client.post("/api/send-document", headers=AUTH, json={})

        assert response.status_code == 503


class TestSessions:
    """Tests for session endpoints."""

    def test_startup_restores_configured_sessions(
        self, services: Services, provider: FakeProvider
    ) -> None:
        """Should start every persisted session when the app starts."""
        services.store.add_sync("restored")

        with TestClient(create_app(services)) as client:
            response = client.get("/api/sessions", headers=AUTH)

        assert response.json()["sessions"] == [
            {"session_id": "restored", "status": "initializing", "qr_available": False}
        ]
        assert provider.calls == 1

    def test_create_session(self, client: TestClient, services: Services) -> None:
        """Should persist and start a session."""
        response = client.post("/api/sessions/shop-1", headers=AUTH, json={"description": "Desk"})

        assert response.status_code == 201
        assert response.json() == {
            "session_id": "shop-1",
            "status": "initializing",
            "qr_available": False,
        }
        records = services.store.list_sync()
        assert [(r.session_id, r.description) for r in records] == [("shop-1", "Desk")]

    def test_create_is_idempotent(self, client: TestClient, provider: FakeProvider) -> None:
        """Should return the live session on a second request."""
        client.post("/api/sessions/shop-1", headers=AUTH)
        response = client.post("/api/sessions/shop-1", headers=AUTH)

        assert response.status_code == 201
        assert provider.calls == 1

    def test_create_invalid_id(self, client: TestClient) -> None:
        """Should reject ids that are not safe directory names."""
        response = client.post("/api/sessions/bad.id", headers=AUTH)

        assert response.status_code == 400

    def test_create_transport_failure(self, client: TestClient, provider: FakeProvider) -> None:
        """Should return 502 when the transport cannot be reached."""
        provider.fail = RuntimeError("gateway down")

        response = client.post("/api/sessions/shop-1", headers=AUTH)

        assert response.status_code == 502

    def test_list_and_get(self, client: TestClient) -> None:
        """Should list live sessions and return one by id."""
        client.post("/api/sessions/a", headers=AUTH)

        listed = client.get("/api/sessions", headers=AUTH).json()["sessions"]
        single = client.get("/api/sessions/a", headers=AUTH)

        assert [s["session_id"] for s in listed] == ["a"]
        assert single.status_code == 200
        assert single.json()["status"] == "initializing"

    def test_get_unknown(self, client: TestClient) -> None:
        """Should return 404 for an unknown session."""
        response = client.get("/api/sessions/missing", headers=AUTH)

        assert response.status_code == 404

    def test_logout(self, client: TestClient, provider: FakeProvider) -> None:
        """Should forward the logout to the transport."""
        client.post("/api/sessions/a", headers=AUTH)

        response = client.post("/api/sessions/a/logout", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert provider.handles[0].logged_out

    def test_logout_unknown(self, client: TestClient) -> None:
        """Should return 404 when there is no live session."""
        response = client.post("/api/sessions/missing/logout", headers=AUTH)

        assert response.status_code == 404
        assert response.json()["detail"] == "Session not found or already disconnected"

    def test_logout_transport_error(self, client: TestClient, provider: FakeProvider) -> None:
        """Should return 500 when the transport rejects the logout."""
        client.post("/api/sessions/a", headers=AUTH)
        provider.handles[0].logout = AsyncMock(side_effect=RuntimeError("offline"))

        response = client.post("/api/sessions/a/logout", headers=AUTH)

        assert response.status_code == 500


class TestSendDocument:
    """Tests for document delivery endpoints."""

    def test_queues_document(self, client: TestClient, services: Services) -> None:
        """Should accept a document for an unknown session and queue it."""
        response = client.post(
            "/api/send-document",
            headers=AUTH,
            json={"session_id": "s1", "recipient": "521", "document": PDF_B64},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["success"] is True
        (task,) = services.queue.pending()
        assert task.task_id == data["task_id"]
        assert task.document == b"%PDF-1.4 test"
        assert task.file_name == "document.pdf"

    def test_legacy_field_names(self, client: TestClient, services: Services) -> None:
        """Should accept the legacy request shape on /send-pdf."""
        response = client.post(
            "/api/send-pdf",
            headers=AUTH,
            json={
                "sessionId": "s1",
                "to": "521",
                "pdfBase64": PDF_B64,
                "fileName": "f.pdf",
                "caption": "hello",
            },
        )

        assert response.status_code == 202
        (task,) = services.queue.pending()
        assert (task.session_id, task.recipient, task.file_name, task.caption) == (
            "s1",
            "521",
            "f.pdf",
            "hello",
        )

    def test_missing_field(self, client: TestClient, services: Services) -> None:
        """Should return 400 and queue nothing."""
        response = client.post(
            "/api/send-document",
            headers=AUTH,
            json={"session_id": "s1", "document": PDF_B64},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == (
            "Missing required parameters: session_id, recipient, document."
        )
        assert len(services.queue) == 0

    def test_invalid_base64(self, client: TestClient) -> None:
        """Should return 400 for an undecodable payload."""
        response = client.post(
            "/api/send-document",
            headers=AUTH,
            json={"session_id": "s1", "recipient": "521", "document": "***"},
        )

        assert response.status_code == 400

    def test_requires_token(self, client: TestClient) -> None:
        """Should reject unauthenticated deliveries."""
        response = client.post("/api/send-document", json={})

        assert response.status_code == 401


class TestQueue:
    """Tests for queue inspection endpoints."""

    def test_list_and_delete(self, client: TestClient) -> None:
        """Should list pending tasks and drop one by id."""
        task_id = client.post(
            "/api/send-document",
            headers=AUTH,
            json={"session_id": "s1", "recipient": "521", "document": PDF_B64},
        ).json()["task_id"]

        listed = client.get("/api/queue", headers=AUTH).json()
        assert [t["task_id"] for t in listed["pending"]] == [task_id]
        assert "document" not in listed["pending"][0]
        assert listed["dead_letters"] == []

        assert client.delete(f"/api/queue/{task_id}", headers=AUTH).status_code == 204
        assert client.delete(f"/api/queue/{task_id}", headers=AUTH).status_code == 404
        assert client.get("/api/queue", headers=AUTH).json()["pending"] == []
