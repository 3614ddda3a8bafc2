"""Tests for the FastAPI API endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from chat_kernel.api.app import app as default_app
from chat_kernel.api.app import create_app
from chat_kernel.audit.store import AuditLog
from chat_kernel.models.config import PipelineConfig
from chat_kernel.workspace.seed import seed_demo_workspace


@pytest.fixture
def client():
    """Create a test client with fresh components."""
    app = create_app(
        workspace=seed_demo_workspace(),
        audit_log=AuditLog(db_path=":memory:"),
        config=PipelineConfig(),
    )
    return TestClient(app)


def _sse_events(response):
    events = []
    for frame in response.text.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


def _chat(client, message, **extra):
    return client.post("/chat", json={"message": message, **extra})


class TestChatEndpoint:
    def test_streams_server_sent_events(self, client):
        response = _chat(client, "Show me pending reviews")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(response)
        assert [e["type"] for e in events] == ["thinking", "text", "blocks", "context", "done"]

    def test_json_reply_when_not_streaming(self, client):
        response = _chat(client, "list clients", stream=False)
        assert response.status_code == 200
        data = response.json()
        assert data["content"].startswith("Found")
        assert data["blocks"][0]["type"] == "client-table"
        assert data["undoAvailable"] is False

    def test_empty_message_is_rejected(self, client):
        assert _chat(client, "").status_code == 422
        assert _chat(client, "   ").status_code == 422

    def test_confirmation_round_trip(self, client):
        events = _sse_events(_chat(client, "delete client Acme", conversationId="c1"))
        pending = events[3]["pendingAction"]

        response = client.get(f"/confirmations/{pending['id']}")
        assert response.status_code == 200
        assert response.json()["severity"] == "danger"
        assert list(client.get("/pending-actions").json()) == [pending["id"]]

        events = _sse_events(_chat(client, "yes", conversationId="c1"))
        assert events[1]["content"] == "Deleted client Acme Holdings."
        assert client.get(f"/confirmations/{pending['id']}").status_code == 404

    def test_non_streaming_confirmation_shape(self, client):
        data = _chat(client, "delete client Acme", stream=False).json()
        assert data["needsConfirmation"] is True
        assert data["pendingAction"]["plan"]["tool"] == "delete_client"


class TestConfirmationEndpoints:
    def test_cancel_is_idempotent(self, client):
        events = _sse_events(_chat(client, "delete client Acme"))
        confirmation_id = events[3]["pendingAction"]["id"]

        first = client.post(f"/confirmations/{confirmation_id}/cancel")
        second = client.post(f"/confirmations/{confirmation_id}/cancel")
        assert first.status_code == second.status_code == 200
        assert first.json()["message"] == second.json()["message"]
        assert client.get("/confirmations/pending").json() == []

    def test_unknown_confirmation(self, client):
        assert client.get("/confirmations/pending-0-missing").status_code == 404


class TestContextEndpoints:
    def test_context_follows_turns(self, client):
        _chat(client, "tell me about John Smith", conversationId="c2")
        context = client.get("/context/c2").json()
        assert context["focusedClientId"] == "cli_john_smith"
        assert context["recentEntities"][0]["name"] == "John Smith"

    def test_reset(self, client):
        _chat(client, "list clients", conversationId="c3")
        assert client.delete("/context/c3").json() == {"reset": "c3"}
        assert client.delete("/context/c3").status_code == 404
        assert client.get("/context/c3").json() == {"recentEntities": []}


class TestToolsUndoAudit:
    def test_list_tools(self, client):
        tools = {t["name"]: t for t in client.get("/tools").json()}
        assert tools["delete_client"]["requiresConfirmation"] is True
        assert tools["list_tasks"]["renderAs"] == "task-list"

    def test_undo_availability(self, client):
        assert client.get("/undo").json()["undoAvailable"] is False
        _chat(client, "create a task to prepare the agenda")
        data = client.get("/undo").json()
        assert data == {
            "undoAvailable": True,
            "undoDescription": 'Undo create task "Prepare the agenda"',
        }

    def test_audit_trail_and_verification(self, client):
        _chat(client, "delete client Acme")
        _chat(client, "yes")
        entries = client.get("/audit").json()
        assert [e["kind"] for e in entries] == ["confirmation", "execution"]
        assert client.get("/audit/verify").json() == {"valid": True, "entries": 2}


class TestConfigEndpoints:
    def test_get_config(self, client):
        config = client.get("/pipeline/config").json()
        assert config["confirmation_ttl_seconds"] == 300
        assert config["sweep_schedule"] is None

    def test_update_config(self, client):
        response = client.put("/pipeline/config", json={
            "confirmation_ttl_seconds": 120,
            "sweep_schedule": "*/5 * * * *",
        })
        assert response.status_code == 200
        assert response.json()["confirmation_ttl_seconds"] == 120
        assert client.get("/pipeline/config").json()["sweep_schedule"] == "*/5 * * * *"

    def test_invalid_cron_is_rejected(self, client):
        response = client.put("/pipeline/config", json={"sweep_schedule": "every tuesday"})
        assert response.status_code == 422
        assert client.get("/pipeline/config").json()["sweep_schedule"] is None

    def test_disabling_rate_limits(self, client):
        client.put("/pipeline/config", json={"rate_limits_enabled": False})
        for _ in range(25):
            data = _chat(client, "create a task to file notes", stream=False).json()
            assert "error" not in data
            assert data["content"].startswith("Created task")


class TestDefaultApp:
    def test_module_level_app_serves_the_demo_workspace(self):
        with TestClient(default_app) as client:
            assert client.get("/tools").status_code == 200
            reply = _chat(client, "list clients", stream=False).json()
            assert reply["content"].startswith("Found")
