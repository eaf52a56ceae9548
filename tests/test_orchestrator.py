"""
Tests for tool orchestration ahead of the agent.

Run with:
$ pytest -q
"""

import os

import pytest
from fakes import (
    FakeToolProvider,
    write_registry,
)

from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.tools.intent_classifier import IntentClassifier
from rapidcli.tools.models import ToolExecutionResult
from rapidcli.tools.orchestrator import (
    NO_OUTPUT_MARKER,
    ToolOrchestrator,
)
from rapidcli.tools.registry import ToolRegistry


def _orchestrator(settings, provider: FakeToolProvider, forward: bool = False) -> ToolOrchestrator:
    write_registry(settings, forward)
    return ToolOrchestrator(ToolRegistry(settings, [provider]), IntentClassifier(), settings)


def test_tool_answer_bypasses_agent(settings, tmp_path, monkeypatch) -> None:
    """A tool that does not forward its result answers directly, with trimmed output."""

    monkeypatch.chdir(tmp_path)
    provider = FakeToolProvider(ToolExecutionResult.success_result("\n  config.yaml: ok  \n"))
    result = _orchestrator(settings, provider).try_orchestrate("lint my config.yaml file")

    assert result.tool_executed
    assert result.bypass_agent
    assert result.response_text == "config.yaml: ok"
    assert result.message == "Used tool 'YAML Linter'."
    assert result.descriptor.name == "yamllint"

    (context,) = provider.contexts
    assert context.target_path == os.path.abspath("config.yaml")
    assert context.parameters["objective"] == "lint my config.yaml file"
    assert context.parameters["extension"] == "yaml"


def test_forwarded_output_becomes_agent_objective(settings) -> None:
    provider = FakeToolProvider(ToolExecutionResult.success_result("3 warnings", error="stderr noise"))
    result = _orchestrator(settings, provider, forward=True).try_orchestrate("lint config.yaml")

    assert result.tool_executed
    assert not result.bypass_agent
    assert result.original_objective == "lint config.yaml"
    assert "Original request: lint config.yaml" in result.agent_objective
    assert "Tool: YAML Linter (linter)" in result.agent_objective
    assert "3 warnings" in result.agent_objective
    assert "Error log:" in result.agent_objective
    assert "stderr noise" in result.agent_objective
    assert "actionable recommendations" in result.agent_objective


def test_empty_output_is_marked(settings) -> None:
    provider = FakeToolProvider(ToolExecutionResult.success_result("   "))
    result = _orchestrator(settings, provider, forward=True).try_orchestrate("lint config.yaml")
    assert NO_OUTPUT_MARKER in result.agent_objective
    assert "Error log:" not in result.agent_objective


def test_output_is_truncated(settings) -> None:
    settings.TOOLS_MAX_OUTPUT_CHARS = 5
    provider = FakeToolProvider(ToolExecutionResult.success_result("abcdefghij"))
    result = _orchestrator(settings, provider).try_orchestrate("lint config.yaml")
    assert result.response_text == "abcde"


def test_no_match_is_skipped(settings) -> None:
    provider = FakeToolProvider()
    result = _orchestrator(settings, provider).try_orchestrate("write a haiku")
    assert not result.tool_executed
    assert result.agent_objective == "write a haiku"
    assert result.message is None
    assert provider.contexts == []


def test_auto_execute_disabled(settings) -> None:
    settings.TOOLS_AUTO_EXECUTE = False
    provider = FakeToolProvider()
    result = _orchestrator(settings, provider).try_orchestrate("lint config.yaml")
    assert not result.tool_executed
    assert result.message == "Automatic tool execution is disabled."
    assert provider.contexts == []


def test_tool_failure_is_skipped_with_reason(settings) -> None:
    provider = FakeToolProvider(ToolExecutionResult.failure_result("bad indentation"))
    result = _orchestrator(settings, provider).try_orchestrate("lint config.yaml")
    assert not result.tool_executed
    assert not result.bypass_agent
    assert result.message == "YAML Linter: bad indentation"


def test_provider_exception_is_skipped(settings) -> None:
    """Provider errors never escape; the user sees a short message instead."""

    provider = FakeToolProvider(execute_error=RuntimeError("segfault"))
    result = _orchestrator(settings, provider).try_orchestrate("lint config.yaml")
    assert not result.tool_executed
    assert result.message == "YAML Linter failed to run; see logs for details."


def test_cancellation_propagates(settings) -> None:
    orchestrator = _orchestrator(settings, FakeToolProvider())
    orchestrator.initialize()
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelled):
        orchestrator.try_orchestrate("lint config.yaml", token)


def test_registry_is_loaded_once(settings) -> None:
    orchestrator = _orchestrator(settings, FakeToolProvider())
    orchestrator.initialize()
    os.remove(settings.TOOLS_REGISTRY_PATH)
    orchestrator.initialize()
    assert [d.name for d in orchestrator.registered_tools()] == ["yamllint"]


def test_negative_output_limit_does_not_cut_from_the_end(settings) -> None:
    settings.TOOLS_MAX_OUTPUT_CHARS = -3
    provider = FakeToolProvider(ToolExecutionResult.success_result("abcdefghij"))
    result = _orchestrator(settings, provider).try_orchestrate("lint config.yaml")
    assert result.response_text == ""
