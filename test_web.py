"""
Tests for the HTTP and WebSocket surface.
"""

import time

import pytest
from fastapi.testclient import TestClient

import web.state
from agent.plan import PlanData, PlanTodo
from web import app


def _wait_for(predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def client(orchestrator, monkeypatch):
    monkeypatch.setattr(web.state, "_orchestrator", orchestrator)
    with TestClient(app) as c:
        yield c


# ------------------------------------------------------------------
# Conversations
# ------------------------------------------------------------------

def test_list_conversations(client, orchestrator):
    data = client.get("/api/conversations").json()
    assert data["active_conversation_id"] == orchestrator.coordinator.active_conversation_id
    assert [c["title"] for c in data["conversations"]] == ["New Chat"]


def test_conversation_lifecycle(client):
    created = client.post("/api/conversations", json={"title": "Forest", "mode": "sketch"}).json()
    conv_id = created["conversation"]["id"]
    assert created["conversation"]["mode"] == "sketch"
    assert created["conversation"]["active"] is True

    assert client.post(f"/api/conversations/{conv_id}/rename", json={"title": "Woods"}).json() == {"ok": True}
    detail = client.get(f"/api/conversations/{conv_id}").json()
    assert detail["title"] == "Woods"
    assert detail["messages"] == []

    response = client.delete(f"/api/conversations/{conv_id}")
    assert response.status_code == 200
    assert response.json()["active_conversation_id"] != conv_id
    assert client.get(f"/api/conversations/{conv_id}").status_code == 404


def test_create_conversation_rejects_unknown_mode(client):
    assert client.post("/api/conversations", json={"mode": "telepathy"}).status_code == 400


def test_switch_returns_the_stored_draft(client, orchestrator):
    first = orchestrator.coordinator.active_conversation_id
    second = client.post("/api/conversations", json={}).json()["conversation"]["id"]

    assert client.post(f"/api/conversations/{first}/switch", json={"draft": "unsent"}).json()["draft"] == ""
    assert client.post(f"/api/conversations/{second}/switch", json={}).json()["draft"] == "unsent"
    assert client.post("/api/conversations/conv-missing/switch", json={}).status_code == 404


def test_surface_binding(client, orchestrator):
    conv_id = orchestrator.coordinator.active_conversation_id
    assert client.post("/api/surfaces/sketch", json={"conversation_id": conv_id}).json() == {"ok": True}
    assert client.get("/api/surfaces/sketch").json()["conversation_id"] == conv_id
    assert client.post("/api/surfaces/sketch", json={"conversation_id": "nope"}).status_code == 404


# ------------------------------------------------------------------
# Chat
# ------------------------------------------------------------------

def test_chat_runs_a_turn(client, orchestrator):
    conv_id = orchestrator.coordinator.active_conversation_id
    response = client.post("/api/chat", json={"text": "hello", "conversation_id": conv_id})
    assert response.status_code == 202
    assert response.json()["conversation_id"] == conv_id

    assert _wait_for(lambda: client.get(f"/api/sessions/{conv_id}/messages").json()["status"] == "ready")
    messages = client.get(f"/api/sessions/{conv_id}/messages").json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant"]


def test_chat_validation(client):
    assert client.post("/api/chat", json={"text": "  "}).status_code == 400
    assert client.post("/api/chat", json={"text": "hi", "conversation_id": "conv-missing"}).status_code == 404
    bad_image = {"text": "hi", "images": [{"media_type": "image/tiff", "data": "aGk="}]}
    assert client.post("/api/chat", json=bad_image).status_code == 400


def test_chat_on_busy_conversation(client, orchestrator):
    conv_id = orchestrator.coordinator.active_conversation_id
    orchestrator.session_for(conv_id).status = "streaming"
    assert client.post("/api/chat", json={"text": "hi", "conversation_id": conv_id}).status_code == 409


def test_submit_routes_to_task_queue(client, orchestrator):
    data = client.post("/api/submit", json={"text": "add a cube"}).json()
    assert data["ok"] is True
    assert data["route"] == "task"
    assert client.post("/api/submit", json={"text": ""}).status_code == 400


def test_intent_templates_and_scene_context(client):
    assert client.get("/api/intent", params={"q": "create a cube"}).json()["is_ai_intent"] is True
    assert client.get("/api/intent", params={"q": "hello"}).json()["is_ai_intent"] is False
    assert len(client.get("/api/templates").json()["templates"]) == 3
    assert "Workspace" in client.get("/api/scene/context").json()["scene_context"]


def test_session_messages_unknown_conversation(client):
    assert client.get("/api/sessions/conv-missing/messages").status_code == 404


# ------------------------------------------------------------------
# Tasks
# ------------------------------------------------------------------

def test_task_endpoints(client, orchestrator):
    assert client.post("/api/tasks", json={"command": " "}).status_code == 400
    task_id = client.post("/api/tasks", json={"command": "add a cube"}).json()["task_id"]

    assert _wait_for(lambda: client.get(f"/api/tasks/{task_id}").json()["status"] == "done")
    snapshot = client.get("/api/tasks").json()
    assert [t["id"] for t in snapshot["tasks"]] == [task_id]
    assert snapshot["is_running"] is False

    assert client.post(f"/api/tasks/{task_id}/dismiss").json() == {"ok": True}
    assert client.get("/api/tasks").json()["history"][0]["id"] == task_id
    assert client.delete("/api/tasks/history").json() == {"ok": True}
    assert client.get("/api/tasks").json()["history"] == []


def test_unknown_task(client):
    assert client.get("/api/tasks/bg-task-missing").status_code == 404
    assert client.post("/api/tasks/bg-task-missing/cancel").status_code == 404
    assert client.post("/api/tasks/bg-task-missing/dismiss").status_code == 404
    assert client.delete("/api/tasks/bg-task-missing").status_code == 404
    assert client.post("/api/tasks/bg-task-missing/open").status_code == 404


def test_open_and_remove_task_endpoints(client, orchestrator):
    opened = client.post("/api/tasks", json={"command": "add a cube"}).json()["task_id"]
    assert _wait_for(lambda: client.get(f"/api/tasks/{opened}").json()["status"] == "done")
    data = client.post(f"/api/tasks/{opened}/open").json()
    assert data["ok"] is True
    assert client.get("/api/conversations").json()["active_conversation_id"] == data["conversation_id"]
    assert client.get(f"/api/tasks/{opened}").status_code == 404

    removed = client.post("/api/tasks", json={"command": "add a sphere"}).json()["task_id"]
    assert _wait_for(lambda: client.get(f"/api/tasks/{removed}").json()["status"] == "done")
    assert client.delete(f"/api/tasks/{removed}").json() == {"ok": True}
    assert client.get("/api/tasks").json() == {"tasks": [], "history": [], "is_running": False}


# ------------------------------------------------------------------
# Plan
# ------------------------------------------------------------------

def test_plan_without_active_plan(client):
    assert client.get("/api/plan").json()["plan"] is None
    data = client.post("/api/plan/approve").json()
    assert data["ok"] is False
    assert data["plan"] is None


def test_plan_todo_editing(client, orchestrator):
    orchestrator.plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor"), PlanTodo("Walls")]))

    data = client.post("/api/plan/todos", json={"label": "Roof", "category": "Structure"}).json()
    assert [t["label"] for t in data["plan"]["todos"]] == ["Floor", "Walls", "Roof"]

    data = client.post("/api/plan/todos/2/toggle").json()
    assert data["plan"]["checked_items"] == [2]

    data = client.post("/api/plan/todos/reorder", json={"from": 2, "to": 0}).json()
    assert data["plan"]["todos"][0]["label"] == "Roof"

    data = client.patch("/api/plan/todos/1", json={"label": "Stone floor"}).json()
    assert data["plan"]["todos"][1]["label"] == "Stone floor"

    data = client.delete("/api/plan/todos/0").json()
    assert [t["label"] for t in data["plan"]["todos"]] == ["Stone floor", "Walls"]

    assert client.post("/api/plan/todos/reorder", json={"from": "x"}).status_code == 400
    assert client.post("/api/plan/todos", json={}).status_code == 400


def test_plan_reject(client, orchestrator):
    orchestrator.plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor")]))
    data = client.post("/api/plan/reject").json()
    assert data["ok"] is True
    assert data["plan"]["status"] == "rejected"
    assert client.post("/api/plan/reject").json()["ok"] is False

    client.post("/api/plan/dismiss")
    assert client.get("/api/plan").json()["plan"] is None


def test_plan_answers_validation(client):
    assert client.post("/api/plan/answers", json={"answers": "yes"}).status_code == 400
    assert client.post("/api/plan/answers", json={"answers": ["yes"]}).json()["ok"] is False


# ------------------------------------------------------------------
# WebSocket
# ------------------------------------------------------------------

def test_websocket_ping_and_unknown_messages(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        ws.send_json({"type": "shout"})
        assert ws.receive_json()["type"] == "error"


def test_websocket_submit_streams_events(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "submit", "text": "add a cube"})
        seen = []
        while "finish" not in seen or "submitted" not in seen:
            message = ws.receive_json()
            seen.append(message["type"])
            if message["type"] == "finish":
                assert message["turn"]["role"] == "assistant"
