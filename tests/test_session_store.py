"""
Tests for JSON session persistence.

Run with:
$ pytest -q
"""

from datetime import timedelta

import pytest

from rapidcli.core.schema import (
    ChatMessage,
    ConversationSession,
)
from rapidcli.memory.session_store import (
    SessionStore,
    normalize_id,
)


def test_normalize_id() -> None:
    assert normalize_id("  My Session #1 ") == "my-session-1"
    assert normalize_id("release_2.0") == "release_2.0"
    with pytest.raises(ValueError):
        normalize_id(" ### ")


def test_save_and_load(tmp_path) -> None:
    store = SessionStore(tmp_path / "sessions")
    session = ConversationSession(id="demo")
    session.messages.append(ChatMessage(role="user", content="hello"))

    path = store.save(session)
    assert path.name == "demo.json"
    assert store.exists("Demo")
    assert [p.name for p in path.parent.iterdir()] == ["demo.json"]

    loaded = store.load("demo")
    assert loaded.messages[0].content == "hello"
    assert store.load("unknown") is None


def test_corrupt_session_raises_on_load_but_is_skipped_in_listings(tmp_path) -> None:
    store = SessionStore(tmp_path)
    store.save(ConversationSession(id="good"))
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError):
        store.load("bad")
    assert [s.id for s in store.list_sessions()] == ["good"]


def test_list_sessions_most_recent_first(tmp_path) -> None:
    store = SessionStore(tmp_path)
    older = ConversationSession(id="older")
    newer = ConversationSession(id="newer", updated_at=older.updated_at + timedelta(minutes=5))
    newer.tools_used.append("Ruff")
    store.save(older)
    store.save(newer)

    summaries = store.list_sessions()
    assert [s.id for s in summaries] == ["newer", "older"]
    assert summaries[0].tool_count == 1
    assert SessionStore(tmp_path / "missing").list_sessions() == []
