"""In-process YAML <-> JSON conversion handler."""

import json
import logging
import os
import time

import yaml

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
from rapidcli.tools.providers import (
    BaseToolProvider,
    register_provider,
)

logger = logging.getLogger(__name__)

YAML_TO_JSON = "yaml-to-json"
JSON_TO_YAML = "json-to-yaml"


@register_provider("builtin.yaml-json")
class YamlJsonToolProvider(BaseToolProvider):
    """Converts the target file between YAML and JSON."""

    name = "builtin.yaml-json"

    def can_handle(self, configuration: ToolConfiguration) -> bool:
        execution = configuration.execution
        return execution.mode.lower() == "builtin" and (execution.handler or "").lower() == "yaml-json"

    def get_availability(
        self, configuration: ToolConfiguration, cancel: CancellationToken | None = None
    ) -> ToolAvailability:
        return ToolAvailability.ready("built-in")

    def execute(
        self,
        configuration: ToolConfiguration,
        context: ToolInvocationContext,
        cancel: CancellationToken | None = None,
    ) -> ToolExecutionResult:
        start = time.monotonic()
        try:
            check_cancelled(cancel)
            path = self._resolve_target(context)
            direction = configuration.metadata.get("direction") or _infer_direction(path)
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()

            if direction == JSON_TO_YAML:
                output = yaml.safe_dump(json.loads(content), sort_keys=False, allow_unicode=True)
            else:
                output = json.dumps(yaml.safe_load(content), indent=2, ensure_ascii=False, default=str)
            return ToolExecutionResult.success_result(output, duration=time.monotonic() - start)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.warning("YAML/JSON conversion failed: %s", exc)
            return ToolExecutionResult.failure_result(str(exc), duration=time.monotonic() - start)

    @staticmethod
    def _resolve_target(context: ToolInvocationContext) -> str:
        if context.target_path and os.path.isfile(context.target_path):
            return context.target_path
        target = context.parameters.get("target")
        if target:
            full = os.path.abspath(target)
            if os.path.isfile(full):
                return full
        raise FileNotFoundError("Could not determine which file to convert.")


def _infer_direction(path: str) -> str:
    return JSON_TO_YAML if path.lower().endswith(".json") else YAML_TO_JSON
