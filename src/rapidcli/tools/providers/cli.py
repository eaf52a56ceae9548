"""Runs registry tools that are external command line programs."""

import logging
import os
import re
import shutil
import subprocess
import time
from typing import (
    Dict,
    List,
    Mapping,
)

from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.tools.models import (
    ToolAvailability,
    ToolConfiguration,
    ToolExecutionResult,
    ToolInvocationContext,
)
from rapidcli.tools.providers import (
    BaseToolProvider,
    ToolExecutionError,
    register_provider,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 0.25
DEFAULT_TIMEOUT_SEC = 300


def expand_tokens(value: str, parameters: Mapping[str, str]) -> str:
    """Replace ``{name}`` placeholders with parameter values, ignoring case."""
    result = value
    for key, replacement in parameters.items():
        pattern = re.compile(re.escape("{" + key + "}"), re.IGNORECASE)
        result = pattern.sub(lambda _m, r=replacement: r, result)
    return result


@register_provider("cli")
class CliToolProvider(BaseToolProvider):
    """Spawns the configured command and captures its output."""

    name = "cli"

    def __init__(self, timeout_sec: float = DEFAULT_TIMEOUT_SEC) -> None:
        self.timeout_sec = timeout_sec

    @classmethod
    def from_settings(cls, settings: Settings) -> "CliToolProvider":
        return cls(timeout_sec=settings.TOOLS_TIMEOUT_SEC)

    def can_handle(self, configuration: ToolConfiguration) -> bool:
        execution = configuration.execution
        return execution.mode.lower() == "cli" and bool((execution.command or "").strip())

    def get_availability(
        self, configuration: ToolConfiguration, cancel: CancellationToken | None = None
    ) -> ToolAvailability:
        command = (configuration.execution.command or "").strip()
        if not command:
            return ToolAvailability.unavailable("Command is not configured.")
        location = shutil.which(command)
        if location is None:
            return ToolAvailability.unavailable(f"Executable '{command}' was not found.")
        return ToolAvailability.ready(location)

    def execute(
        self,
        configuration: ToolConfiguration,
        context: ToolInvocationContext,
        cancel: CancellationToken | None = None,
    ) -> ToolExecutionResult:
        execution = configuration.execution
        command = (execution.command or "").strip()
        if not command:
            raise ToolExecutionError(f"Tool '{configuration.name}' has no command configured.")

        params = dict(context.parameters)
        argv: List[str] = [command] + [expand_tokens(a, params) for a in execution.arguments]

        env: Dict[str, str] = dict(os.environ)
        for key, value in execution.environment.items():
            env[key] = expand_tokens(value, params)

        cwd = None
        if execution.working_directory:
            cwd = os.path.abspath(execution.working_directory)
            os.makedirs(cwd, exist_ok=True)

        logger.info("Running tool '%s': %s", configuration.name, " ".join(argv))
        start = time.monotonic()
        try:
            proc = subprocess.Popen(  # pylint: disable=consider-using-with
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                cwd=cwd,
                env=env,
            )
        except OSError as exc:
            raise ToolExecutionError(f"Could not start '{command}': {exc}") from exc

        with proc:
            while True:
                try:
                    stdout, stderr = proc.communicate(timeout=POLL_INTERVAL_SEC)
                    break
                except subprocess.TimeoutExpired:
                    if cancel is not None and cancel.cancelled:
                        proc.kill()
                        proc.communicate()
                        logger.info("Tool '%s' killed after cancellation", configuration.name)
                        raise OperationCancelled("Tool execution cancelled.") from None
                    if time.monotonic() - start > self.timeout_sec:
                        proc.kill()
                        stdout, stderr = proc.communicate()
                        logger.warning(
                            "Tool '%s' killed after %ss", configuration.name, self.timeout_sec
                        )
                        return ToolExecutionResult.failure_result(
                            f"Timed out after {self.timeout_sec} seconds.",
                            output=(stdout or "").strip(),
                            duration=time.monotonic() - start,
                        )

        duration = time.monotonic() - start
        output = (stdout or "").strip()
        error = (stderr or "").strip() or None
        logger.debug(
            "Tool '%s' exited with %s in %.2fs", configuration.name, proc.returncode, duration
        )
        if proc.returncode == 0:
            return ToolExecutionResult.success_result(output, error=error, duration=duration)
        return ToolExecutionResult.failure_result(
            error or f"Exited with code {proc.returncode}.", output=output, duration=duration
        )
