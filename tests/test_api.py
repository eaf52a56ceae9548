"""
Tests for the HTTP API.

Run with:
$ pytest -q
"""

import pytest
from conftest import (
    FakeModelClient,
    text_response,
)
from fakes import (
    FakeToolProvider,
    write_registry,
)
from fastapi.testclient import TestClient

from rapidcli.api.app import create_app
from rapidcli.core.context import build_context
from rapidcli.tools.models import ToolExecutionResult


@pytest.fixture
def api(settings):
    write_registry(settings)
    client = FakeModelClient(settings, [text_response("Agent answer.")])
    provider = FakeToolProvider(ToolExecutionResult.success_result("no problems"))
    context = build_context(settings, client=client, providers=[provider])
    return TestClient(create_app(context))


def test_health(api) -> None:
    assert api.get("/health").json() == {"status": "ok"}


def test_agent_endpoint_with_tool(api) -> None:
    resp = api.post("/agent", json={"message": "lint config.yaml"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["reply"] == "no problems"
    assert body["tool"] == "YAML Linter"
    assert body["completed"] is None

    history = api.get("/history").json()
    assert [m["role"] for m in history] == ["user", "assistant"]


def test_agent_endpoint_with_agent(api) -> None:
    body = api.post("/agent", json={"message": "write a haiku"}).json()
    assert body["reply"] == "Agent answer."
    assert body["completed"] is True
    assert body["tool"] is None


def test_empty_message_is_rejected(api) -> None:
    assert api.post("/agent", json={"message": "  "}).status_code == 400


def test_sessions_round_trip(api) -> None:
    first = api.post("/sessions").json()["session_id"]
    api.post("/agent", json={"message": "lint config.yaml"})

    saved = api.post("/sessions/My Snapshot/save").json()
    assert saved == {"session_id": "my-snapshot", "message_count": 2}

    api.post("/sessions")
    assert api.get("/history").json() == []

    loaded = api.post("/sessions/my-snapshot/load").json()
    assert loaded["message_count"] == 2
    assert api.post("/sessions/missing/load").status_code == 404

    ids = [s["id"] for s in api.get("/sessions").json()]
    assert "my-snapshot" in ids
    assert first in ids


def test_tools_listing_and_reload(api) -> None:
    tools = api.get("/tools").json()
    assert tools == [
        {
            "name": "yamllint",
            "display_name": "YAML Linter",
            "type": "linter",
            "available": True,
            "detail": "fake",
            "tasks": ["lint"],
        }
    ]
    assert api.post("/tools/reload").json() == tools


def test_unreadable_session_is_a_server_error(api) -> None:
    sessions = api.app.state.context.store.directory
    sessions.mkdir(parents=True, exist_ok=True)
    (sessions / "broken.json").write_text("{not json", encoding="utf-8")

    resp = api.post("/sessions/broken/load")
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Session 'broken' could not be read."
    assert api.post("/sessions/%20%23%20/load").status_code == 400
