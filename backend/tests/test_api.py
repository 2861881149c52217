import time

import pytest
from fastapi.testclient import TestClient

from issuechat.main import app
from issuechat.services.pipeline import COMPLETED_TEXT, GUIDANCE_TEXT
from issuechat.services.runner import SessionPipelineRunner


@pytest.fixture
def install_service(monkeypatch):
    def install(service):
        runner = SessionPipelineRunner(service)
        monkeypatch.setattr("issuechat.api.routes.messages.pipeline_runner", runner)
        return runner

    return install


def wait_for_messages(client, session_id, predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while True:
        messages = client.get(f"/api/sessions/{session_id}/messages").json()["messages"]
        if predicate(messages) or time.monotonic() > deadline:
            return messages
        time.sleep(0.02)


def test_health():
    with TestClient(app) as client:
        assert client.get("/api/health").json() == {"status": "ok"}


def test_create_and_list_sessions(registry):
    with TestClient(app) as client:
        created = client.post("/api/sessions", json={"title": "triage"})
        listed = client.get("/api/sessions").json()

    assert created.status_code == 201
    assert created.json()["title"] == "triage"
    assert listed["total"] == 1
    assert listed["items"][0]["sessionId"] == created.json()["sessionId"]


def test_unknown_session_is_404(registry):
    with TestClient(app) as client:
        assert client.get("/api/sessions/chat-nope/messages").status_code == 404
        assert client.post("/api/sessions/chat-nope/messages", json={"content": "PROJ-1"}).status_code == 404


def test_blank_message_is_rejected(registry):
    session = registry.create()

    with TestClient(app) as client:
        response = client.post(f"/api/sessions/{session.session_id}/messages", json={"content": "   "})

    assert response.status_code == 422


def test_posting_issue_key_runs_pipeline(registry, install_service, fake_service):
    service = fake_service(tools=["LINT", "SCAN"])
    install_service(service)
    session = registry.create()

    with TestClient(app) as client:
        accepted = client.post(
            f"/api/sessions/{session.session_id}/messages",
            json={"content": "Please look at PROJ-123"},
        )
        messages = wait_for_messages(
            client,
            session.session_id,
            lambda items: items and items[-1]["content"] == COMPLETED_TEXT,
        )

    assert accepted.status_code == 202
    assert accepted.json()["messageId"] == messages[0]["id"]
    assert messages[0]["sender"] == "user"
    assert [m["sender"] for m in messages[1:]] == ["bot"] * 5
    assert messages[-1]["content"] == COMPLETED_TEXT
    assert session.title == "Please look at PROJ-123"


def test_posting_text_without_key_gets_guidance(registry, install_service, fake_service):
    service = fake_service()
    install_service(service)
    session = registry.create()

    with TestClient(app) as client:
        client.post(f"/api/sessions/{session.session_id}/messages", json={"content": "hello"})
        messages = wait_for_messages(client, session.session_id, lambda items: len(items) >= 2)

    assert [m["content"] for m in messages] == ["hello", GUIDANCE_TEXT]
    assert service.calls == []


def test_put_replaces_history(registry):
    session = registry.create()
    session.store.insert("stale")
    history = [
        {"id": "user-1", "content": "PROJ-1", "sender": "user", "timestamp": 1, "type": "text"},
        {"id": "bot-1", "content": "done", "sender": "bot", "timestamp": 2, "type": "text"},
    ]

    with TestClient(app) as client:
        response = client.put(
            f"/api/sessions/{session.session_id}/messages",
            json={"messages": history},
        )

    assert response.status_code == 200
    assert [m["id"] for m in response.json()["messages"]] == ["user-1", "bot-1"]


def test_put_with_duplicate_ids_conflicts(registry):
    session = registry.create()
    duplicate = {"id": "x", "content": "a", "sender": "bot", "timestamp": 1, "type": "text"}

    with TestClient(app) as client:
        response = client.put(
            f"/api/sessions/{session.session_id}/messages",
            json={"messages": [duplicate, duplicate]},
        )

    assert response.status_code == 409
    assert len(session.store) == 0


def test_websocket_sends_snapshot_then_live_events(registry):
    session = registry.create()
    session.store.insert("earlier")

    with TestClient(app) as client:
        with client.websocket_connect(f"/api/ws?sessionId={session.session_id}") as websocket:
            snapshot = websocket.receive_json()
            client.put(
                f"/api/sessions/{session.session_id}/messages",
                json={"messages": []},
            )
            replaced = websocket.receive_json()

    assert snapshot["kind"] == "replaced"
    assert [m["content"] for m in snapshot["messages"]] == ["earlier"]
    assert replaced["kind"] == "replaced"
    assert replaced["messages"] == []
