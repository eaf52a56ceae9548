"""
Tests for the built-in tool providers.

Run with:
$ pytest -q
"""

import json
import sys
import threading

import pytest
import yaml

from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.tools.models import (
    ToolConfiguration,
    ToolInvocationContext,
)
from rapidcli.tools.providers import (
    ToolExecutionError,
    default_providers,
)
from rapidcli.tools.providers.cli import (
    CliToolProvider,
    expand_tokens,
)
from rapidcli.tools.providers.yaml_json import YamlJsonToolProvider


def _python_tool(script: str, **execution) -> ToolConfiguration:
    return ToolConfiguration.model_validate(
        {
            "name": "py",
            "execution": {
                "mode": "cli",
                "command": sys.executable,
                "arguments": ["-c", script],
                **execution,
            },
        }
    )


def _context(target: str = "/tmp/x") -> ToolInvocationContext:
    return ToolInvocationContext(
        objective="run it", target_path=target, parameters={"target": target, "language": "python"}
    )


def test_default_providers_are_registered(settings) -> None:
    names = [p.name for p in default_providers(settings)]
    assert sorted(names) == ["builtin.yaml-json", "cli"]


def test_expand_tokens_ignores_case() -> None:
    assert expand_tokens("--path={TARGET} --lang={language}", {"target": "a", "language": "py"}) == (
        "--path=a --lang=py"
    )


# ---------------------------------------------------------------------------
# CLI provider
# ---------------------------------------------------------------------------
def test_cli_can_handle_and_availability() -> None:
    provider = CliToolProvider()
    assert provider.can_handle(_python_tool("pass"))
    assert provider.get_availability(_python_tool("pass")).available

    missing = ToolConfiguration.model_validate(
        {"name": "nope", "execution": {"command": "definitely-not-a-real-binary-xyz"}}
    )
    availability = provider.get_availability(missing)
    assert not availability.available
    assert "was not found" in availability.detail
    assert not provider.can_handle(ToolConfiguration(name="empty"))


def test_cli_success_expands_arguments_and_environment() -> None:
    tool = _python_tool(
        "import os, sys; print(sys.argv[1]); print(os.environ['TOOL_LANG'])",
        environment={"TOOL_LANG": "{Language}"},
    )
    tool = tool.model_copy(
        update={
            "execution": tool.execution.model_copy(
                update={"arguments": tool.execution.arguments + ["{target}"]}
            )
        }
    )
    result = CliToolProvider().execute(tool, _context("/src/app"))
    assert result.success
    assert result.output.splitlines() == ["/src/app", "python"]
    assert result.error is None


def test_cli_non_zero_exit_is_a_failure() -> None:
    tool = _python_tool("import sys; sys.stderr.write('bad input'); sys.exit(3)")
    result = CliToolProvider().execute(tool, _context())
    assert not result.success
    assert result.error == "bad input"


def test_cli_timeout_kills_the_process() -> None:
    tool = _python_tool("import time; time.sleep(30)")
    result = CliToolProvider(timeout_sec=0.5).execute(tool, _context())
    assert not result.success
    assert result.error == "Timed out after 0.5 seconds."
    assert result.duration < 10


def test_cli_cancellation_kills_the_process() -> None:
    tool = _python_tool("import time; time.sleep(30)")
    token = CancellationToken()
    timer = threading.Timer(0.3, token.cancel)
    timer.start()
    try:
        with pytest.raises(OperationCancelled):
            CliToolProvider().execute(tool, _context(), token)
    finally:
        timer.cancel()


def test_cli_without_command_raises() -> None:
    with pytest.raises(ToolExecutionError):
        CliToolProvider().execute(ToolConfiguration(name="empty"), _context())


# ---------------------------------------------------------------------------
# YAML / JSON provider
# ---------------------------------------------------------------------------
CONVERTER = ToolConfiguration.model_validate(
    {"name": "conv", "execution": {"mode": "builtin", "handler": "yaml-json"}}
)


def test_yaml_to_json(tmp_path) -> None:
    source = tmp_path / "config.yaml"
    source.write_text("name: demo\nports:\n  - 80\n  - 443\n", encoding="utf-8")

    provider = YamlJsonToolProvider()
    assert provider.can_handle(CONVERTER)
    assert not CliToolProvider().can_handle(CONVERTER)

    result = provider.execute(CONVERTER, _context(str(source)))
    assert result.success
    assert json.loads(result.output) == {"name": "demo", "ports": [80, 443]}


def test_json_direction_is_inferred(tmp_path) -> None:
    source = tmp_path / "data.json"
    source.write_text('{"b": 1, "a": [true]}', encoding="utf-8")
    result = YamlJsonToolProvider().execute(CONVERTER, _context(str(source)))
    assert result.success
    assert yaml.safe_load(result.output) == {"b": 1, "a": [True]}
    assert result.output.index("b:") < result.output.index("a:")


def test_conversion_errors_become_failures(tmp_path) -> None:
    provider = YamlJsonToolProvider()
    missing = provider.execute(CONVERTER, _context(str(tmp_path / "absent.yaml")))
    assert not missing.success

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    result = provider.execute(CONVERTER, _context(str(broken)))
    assert not result.success
    assert result.error
