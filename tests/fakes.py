"""Test doubles for tool providers."""

from typing import (
    List,
    Optional,
)

from rapidcli.core.cancellation import (
    CancellationToken,
    check_cancelled,
)
from rapidcli.tools.models import (
    ToolAvailability,
    ToolConfiguration,
    ToolExecutionResult,
    ToolInvocationContext,
)
from rapidcli.tools.providers import BaseToolProvider


class FakeToolProvider(BaseToolProvider):
    """Handles ``mode: fake`` tools and returns a scripted result."""

    name = "fake"

    def __init__(
        self,
        result: Optional[ToolExecutionResult] = None,
        available: bool = True,
        availability_error: Optional[Exception] = None,
        execute_error: Optional[Exception] = None,
    ) -> None:
        self.result = result or ToolExecutionResult.success_result("ok")
        self.available = available
        self.availability_error = availability_error
        self.execute_error = execute_error
        self.contexts: List[ToolInvocationContext] = []

    def can_handle(self, configuration: ToolConfiguration) -> bool:
        return configuration.execution.mode == "fake"

    def get_availability(
        self, configuration: ToolConfiguration, cancel: CancellationToken | None = None
    ) -> ToolAvailability:
        if self.availability_error is not None:
            raise self.availability_error
        if self.available:
            return ToolAvailability.ready("fake")
        return ToolAvailability.unavailable("not installed")

    def execute(
        self,
        configuration: ToolConfiguration,
        context: ToolInvocationContext,
        cancel: CancellationToken | None = None,
    ) -> ToolExecutionResult:
        check_cancelled(cancel)
        self.contexts.append(context)
        if self.execute_error is not None:
            raise self.execute_error
        return self.result


def write_registry(settings, forward: bool = False) -> None:
    """Register a single fake YAML linter in the settings' registry file."""
    with open(settings.TOOLS_REGISTRY_PATH, "w", encoding="utf-8") as f:
        f.write(
            "tools:\n"
            "  - name: yamllint\n"
            "    displayName: YAML Linter\n"
            "    type: linter\n"
            "    execution: {mode: fake}\n"
            "    tasks: [lint]\n"
            "    fileExtensions: [yaml, yml]\n"
            f"    forwardResultToAgent: {str(forward).lower()}\n"
        )
