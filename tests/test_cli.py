"""
Tests for the interactive shell helpers.

Run with:
$ pytest -q
"""

import pytest
from conftest import (
    FakeModelClient,
    text_response,
)

from rapidcli.client import cli
from rapidcli.client.cli import (
    cmd_config,
    cmd_save,
    resolve_command,
    run_cancellable,
)
from rapidcli.core.cancellation import OperationCancelled
from rapidcli.core.context import build_context


def test_resolve_command_prefixes() -> None:
    assert resolve_command("his") == "history"
    assert resolve_command("EXIT") == "exit"
    assert resolve_command("mcp") == "mcp"
    assert resolve_command("s") is None  # save, sessions
    assert resolve_command("sa") == "save"
    assert resolve_command("bogus") is None


def test_run_cancellable_returns_value() -> None:
    assert run_cancellable(lambda token: 42) == (42, False)


def test_run_cancellable_reports_cancellation() -> None:
    def work(token):
        raise OperationCancelled("stop")

    assert run_cancellable(work) == (None, True)


def test_run_cancellable_reraises_errors() -> None:
    def work(token):
        raise KeyError("boom")

    with pytest.raises(KeyError):
        run_cancellable(work)


def test_config_and_save_commands(settings, capsys) -> None:
    ctx = build_context(settings, client=FakeModelClient(settings, [text_response("x")]), providers=[])
    cmd_config(ctx, ["set", "agent.max_iterations", "2"])
    assert settings.AGENT_MAX_ITERATIONS == 2
    cmd_config(ctx, ["set", "unknown.key", "2"])
    cmd_save(ctx, ["Nightly", "Run"])

    out = capsys.readouterr().out
    assert "agent.max_iterations = 2" in out
    assert "Unknown setting 'unknown.key'." in out
    assert "Session saved as 'nightly-run'." in out
    assert ctx.store.exists("nightly-run")


def test_bare_slash_does_not_end_the_shell(settings, monkeypatch, capsys) -> None:
    """A lone '/' prints a hint and the shell keeps reading until /exit."""

    ctx = build_context(settings, client=FakeModelClient(settings), providers=[])
    inputs = iter([("/", True), ("/exit", True)])
    monkeypatch.setattr(cli, "get_user_message", lambda: next(inputs))

    cli.run_cli(ctx)

    assert "Type a command after '/'." in capsys.readouterr().out
    assert next(inputs, None) is None
