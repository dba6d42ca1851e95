"""
HTTP API tests. The module-level singletons get a mock-provider model and agent
config for the duration of each test so nothing talks to a real model server.
"""
import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

import agenticlab.app as api
from agenticlab.config import settings
from agenticlab.services.agent_factory import AgentConfig
from agenticlab.services.model_registry import ModelConfig


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "TRACING_ENABLED", False)
    api.model_registry.add(ModelConfig("test-mock", "Test Mock", provider="mock", model_name="mock-test"))
    api.agent_factory.add(AgentConfig("test-qa", "Test Q&A", "SimpleQuestion", "test-mock"))
    api.agent_factory.add(AgentConfig("test-orphan", "Test Orphan", "Summarizer", "no-such-model"))
    with TestClient(api.app) as c:
        yield c
    api.runtime.unregister("test-qa")
    api.agent_factory.remove("test-qa")
    api.agent_factory.remove("test-orphan")
    api.model_registry.remove("test-mock")


def _wait_for_status(client: TestClient, session_id: str, timeout_s: float = 5.0) -> dict:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        body = client.get(f"/session/{session_id}/status").json()
        if body.get("status") not in (None, "running"):
            return body
        time.sleep(0.02)
    raise AssertionError(f"session {session_id} did not finish")


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_agent_types(client):
    types = client.get("/agent-types").json()["agent_types"]
    assert len(types) == 8
    assert {"type_id", "description", "system_prompt"} <= set(types[0])


def test_configs_listing(client):
    ids = [c["id"] for c in client.get("/agent-configs").json()["agent_configs"]]
    assert "qa-precise" in ids and "test-qa" in ids
    models = [m["id"] for m in client.get("/models").json()["models"]]
    assert "default-llama" in models


def test_available_models_uses_probe(client):
    with patch.object(api.model_registry, "is_online", AsyncMock(return_value=False)), \
            patch.object(api.model_registry, "available_models", AsyncMock(return_value=[])):
        r = client.get("/models/available")
    assert r.json() == {"online": False, "models": []}


def test_register_and_send(client):
    r = client.post("/agents/test-qa")
    assert r.status_code == 200
    assert r.json()["registered"] == "test-qa"
    assert "test-qa" in client.get("/agents").json()["agents"]

    r = client.post("/agents/test-qa/send", json={"message": "hi", "metadata": {"temperature": 0.1}})
    body = r.json()
    assert r.status_code == 200
    assert body["success"] is True
    assert body["agent_name"] == "test-qa"
    assert body["message"] == "[mock] you said: hi"
    assert body["metadata"]["model"] == "mock-test"


def test_invalid_override_is_a_failed_response(client):
    client.post("/agents/test-qa")
    r = client.post("/agents/test-qa/send", json={"message": "hi", "metadata": {"maxTokens": -5}})
    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["message"].startswith("Error:")


def test_unknown_agent_is_404(client):
    r = client.post("/agents/ghost/send", json={"message": "hi"})
    assert r.status_code == 404
    assert "ghost" in r.json()["detail"]
    assert client.delete("/agents/ghost").status_code == 404
    assert client.post("/agents/ghost-config").status_code == 404


def test_register_with_missing_model_is_404(client):
    r = client.post("/agents/test-orphan")
    assert r.status_code == 404
    assert "no-such-model" in r.json()["detail"]


def test_compare(client):
    r = client.post("/compare", json={"prompt": "Explain RAG", "agent_config_ids": ["test-qa", "missing"]})
    assert r.status_code == 200
    entries = r.json()["entries"]
    assert [e["agent_config_id"] for e in entries] == ["test-qa", "missing"]
    assert entries[0]["success"] is True
    assert entries[0]["response"] == "[mock] you said: Explain RAG"
    assert entries[1]["success"] is False


def test_compare_requires_ids(client):
    r = client.post("/compare", json={"prompt": "hi", "agent_config_ids": []})
    assert r.status_code == 422


def test_chat_session_flow(client):
    r = client.post("/sessions", json={"agent_config_id": "test-qa"})
    assert r.status_code == 200
    session_id = r.json()["session_id"]

    assert client.post(f"/session/{session_id}/chat", json={"message": "hello"}).json() == {"result": "started"}
    assert _wait_for_status(client, session_id)["status"] == "done"

    entries = client.get(f"/session/{session_id}/history").json()["entries"]
    assert [e["role"] for e in entries] == ["user", "assistant"]
    assert entries[1]["content"] == "[mock] you said: hello"
    assert entries[1]["agent_name"] == "test-qa"


def test_unknown_session(client):
    assert client.post("/sessions", json={"agent_config_id": "ghost"}).status_code == 404
    assert client.get("/session/nope/history").status_code == 404
    assert client.post("/session/nope/chat", json={"message": "hi"}).status_code == 404
    assert client.get("/session/nope/status").json() == {"exists": False}
