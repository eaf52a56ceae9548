"""
Tests for the objective pipeline.

Run with:
$ pytest -q
"""

from conftest import (
    FakeModelClient,
    text_response,
)
from fakes import (
    FakeToolProvider,
    write_registry,
)

from rapidcli.agent.agent_loop import AGENT_DISABLED
from rapidcli.agent.assistant import (
    CANCELLED,
    CHECKING_TOOLS,
    EMPTY_OBJECTIVE,
    PREPARING_AGENT,
)
from rapidcli.core.cancellation import CancellationToken
from rapidcli.core.context import build_context
from rapidcli.tools.models import ToolExecutionResult


def _context(settings, responses=(), output="config.yaml: ok", forward=False):
    write_registry(settings, forward)
    provider = FakeToolProvider(ToolExecutionResult.success_result(output))
    client = FakeModelClient(settings, responses)
    return build_context(settings, client=client, providers=[provider])


def test_tool_answer_is_the_reply(settings) -> None:
    """A non-forwarding tool answers without any model call."""

    ctx = _context(settings)
    outcome = ctx.assistant.handle_objective("lint config.yaml")

    assert outcome.response_text == "config.yaml: ok"
    assert outcome.agent_result is None
    assert outcome.thoughts == [CHECKING_TOOLS, "Used tool 'YAML Linter'."]
    assert [(m.role, m.content) for m in ctx.chat.history()] == [
        ("user", "lint config.yaml"),
        ("assistant", "config.yaml: ok"),
    ]
    assert ctx.chat.session.tools_used == ["YAML Linter"]
    assert ctx.client.requests == []


def test_forwarded_tool_output_goes_to_agent(settings) -> None:
    ctx = _context(settings, [text_response("Fix line 3.")], forward=True)
    outcome = ctx.assistant.handle_objective("lint config.yaml")

    assert outcome.response_text == "Fix line 3."
    assert outcome.agent_result.completed
    assert PREPARING_AGENT in outcome.thoughts
    agent_prompt = ctx.client.requests[0].messages[1].content
    assert "config.yaml: ok" in agent_prompt


def test_plain_objective_runs_agent(settings) -> None:
    ctx = _context(settings, [text_response("Here is a haiku.")])
    outcome = ctx.assistant.handle_objective("write a haiku")

    assert outcome.response_text == "Here is a haiku."
    assert outcome.orchestration is not None and not outcome.orchestration.tool_executed
    stored = ctx.store.load(ctx.chat.session.id)
    assert stored.messages[-1].content == "Here is a haiku."
    assert stored.agent_state.thought_log[:1] == [CHECKING_TOOLS]


def test_disabled_agent_notice(settings) -> None:
    settings.AGENT_ENABLED = False
    ctx = _context(settings)
    outcome = ctx.assistant.handle_objective("write a haiku")
    assert outcome.response_text == AGENT_DISABLED
    assert ctx.chat.history()[-1].content == AGENT_DISABLED


def test_blank_objective(settings) -> None:
    ctx = _context(settings)
    assert ctx.assistant.handle_objective("   ").response_text == EMPTY_OBJECTIVE
    assert ctx.chat.history() == ()


def test_cancelled_turn_is_recorded(settings) -> None:
    ctx = _context(settings)
    token = CancellationToken()
    token.cancel()
    outcome = ctx.assistant.handle_objective("lint config.yaml", token)

    assert outcome.cancelled
    assert outcome.response_text == CANCELLED
    assert ctx.chat.history()[-1].content == CANCELLED


def test_run_agent_directly(settings, workspace) -> None:
    (workspace / "a.txt").write_text("a", encoding="utf-8")
    ctx = _context(settings, [text_response("Read it.")])
    result = ctx.assistant.run_agent("read a.txt")
    assert result.completed
    assert ctx.chat.history() == ()
