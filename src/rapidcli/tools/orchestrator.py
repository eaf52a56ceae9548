"""
Tool orchestration.

Before the agent sees an objective, the orchestrator checks whether a registered tool should run
first.  The tool's output either becomes the answer (agent bypassed) or is folded into a new objective
for the agent to interpret.
"""

import logging
import os
from dataclasses import dataclass
from typing import (
    Dict,
    Optional,
    Tuple,
)

from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.tools.intent_classifier import IntentClassifier
from rapidcli.tools.models import (
    ToolExecutionResult,
    ToolInvocationContext,
)
from rapidcli.tools.registry import (
    ToolDescriptor,
    ToolRegistry,
)

logger = logging.getLogger(__name__)

NO_OUTPUT_MARKER = "<no output>"


@dataclass(frozen=True)
class OrchestrationResult:
    """What happened when the orchestrator looked at an objective."""

    original_objective: str
    agent_objective: str
    tool_executed: bool = False
    bypass_agent: bool = False
    response_text: Optional[str] = None
    descriptor: Optional[ToolDescriptor] = None
    execution_result: Optional[ToolExecutionResult] = None
    message: Optional[str] = None

    @classmethod
    def skip(cls, objective: str, message: Optional[str] = None) -> "OrchestrationResult":
        """No tool ran; the agent gets the objective unchanged."""
        return cls(original_objective=objective, agent_objective=objective, message=message)

    @classmethod
    def forward(
        cls,
        objective: str,
        agent_objective: str,
        descriptor: ToolDescriptor,
        execution: ToolExecutionResult,
        message: str,
    ) -> "OrchestrationResult":
        """A tool ran and the agent should interpret its output."""
        return cls(
            original_objective=objective,
            agent_objective=agent_objective,
            tool_executed=True,
            descriptor=descriptor,
            execution_result=execution,
            message=message,
        )

    @classmethod
    def complete(
        cls,
        objective: str,
        descriptor: ToolDescriptor,
        execution: ToolExecutionResult,
        response_text: str,
        message: str,
    ) -> "OrchestrationResult":
        """A tool ran and its output is the final answer."""
        return cls(
            original_objective=objective,
            agent_objective=objective,
            tool_executed=True,
            bypass_agent=True,
            response_text=response_text,
            descriptor=descriptor,
            execution_result=execution,
            message=message,
        )


class ToolOrchestrator:
    """Selects, runs and routes registry tools for an objective."""

    def __init__(
        self,
        registry: ToolRegistry,
        classifier: IntentClassifier,
        settings: Settings,
    ) -> None:
        self.registry = registry
        self.classifier = classifier
        self.settings = settings
        self._initialized = False

    def initialize(self, cancel: CancellationToken | None = None) -> None:
        """Load the registry the first time it is needed."""
        if self._initialized:
            return
        self.registry.reload(cancel)
        self._initialized = True

    def registered_tools(self) -> Tuple[ToolDescriptor, ...]:
        return self.registry.tools

    def try_orchestrate(
        self, objective: str, cancel: CancellationToken | None = None
    ) -> OrchestrationResult:
        """
        Run the best matching tool for *objective*, if any.

        Tool failures never raise; they come back as a skip with an explanatory message.
        Only :class:`OperationCancelled` propagates.
        """
        self.initialize(cancel)

        if not self.settings.TOOLS_AUTO_EXECUTE:
            return OrchestrationResult.skip(objective, "Automatic tool execution is disabled.")

        request = self.classifier.classify(objective)
        descriptor, score = self.registry.resolve(request)
        if descriptor is None or score <= 0:
            return OrchestrationResult.skip(objective)
        logger.info("Resolved tool '%s' (score %d)", descriptor.name, score)

        if descriptor.provider is None:
            return OrchestrationResult.skip(
                objective, f"No provider is registered for {descriptor.display_name}."
            )
        if not descriptor.is_available:
            reason = descriptor.availability.detail or "tool unavailable"
            return OrchestrationResult.skip(objective, f"{descriptor.display_name}: {reason}")

        parameters: Dict[str, str] = dict(request.parameters)
        parameters["objective"] = objective
        target = _resolve_target(request.target_path or parameters.get("target"))
        parameters["target"] = target or os.getcwd()

        context = ToolInvocationContext(
            objective=objective,
            target_path=parameters["target"],
            language=request.language,
            parameters=parameters,
        )

        try:
            execution = descriptor.provider.execute(descriptor.configuration, context, cancel)
        except OperationCancelled:
            raise
        except Exception:  # pylint: disable=broad-except
            logger.exception("Tool '%s' failed during execution", descriptor.name)
            return OrchestrationResult.skip(
                objective, f"{descriptor.display_name} failed to run; see logs for details."
            )

        output = self._normalize_output(execution.output)
        if not execution.success:
            failure = execution.error or "The tool exited with a non-zero status."
            logger.warning("Tool '%s' reported failure: %s", descriptor.name, failure)
            return OrchestrationResult.skip(objective, f"{descriptor.display_name}: {failure}")

        execution = ToolExecutionResult.success_result(
            output, error=execution.error, duration=execution.duration
        )
        message = f"Used tool '{descriptor.display_name}'."
        if not descriptor.configuration.forward_result_to_agent:
            return OrchestrationResult.complete(objective, descriptor, execution, output, message)

        agent_objective = build_agent_objective(objective, descriptor, output, execution.error)
        return OrchestrationResult.forward(
            objective, agent_objective, descriptor, execution, message
        )

    def _normalize_output(self, output: str) -> str:
        if not output or not output.strip():
            return ""
        return output[: max(0, self.settings.TOOLS_MAX_OUTPUT_CHARS)].strip()


def _resolve_target(path: Optional[str]) -> Optional[str]:
    if not path or not path.strip():
        return None
    if os.path.isabs(path):
        return path
    return os.path.abspath(path)


def build_agent_objective(
    objective: str, descriptor: ToolDescriptor, output: str, error: Optional[str]
) -> str:
    """Compose the prompt that asks the agent to interpret a tool's output."""
    lines = [
        "Act as a senior analyst.",
        "Interpret the results of the tool that ran automatically and answer the request.",
        "",
        f"Original request: {objective}",
        "",
        f"Tool: {descriptor.display_name} ({descriptor.configuration.type or 'unknown'})",
        "Output:",
        "```text",
        output if output.strip() else NO_OUTPUT_MARKER,
        "```",
    ]
    if error and error.strip():
        lines += ["", "Error log:", "```text", error, "```"]
    lines += ["", "Include actionable recommendations where applicable."]
    return "\n".join(lines) + "\n"
