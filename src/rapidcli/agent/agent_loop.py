"""Main agent loop for RapidCLI: model calls interleaved with filesystem tool calls."""

from __future__ import annotations

import logging
import os
from typing import List

from rapidcli.agent.filesystem_tools import FileSystemToolDispatcher
from rapidcli.agent.model_client import BaseModelClient
from rapidcli.config import Settings
from rapidcli.core.cancellation import CancellationToken
from rapidcli.core.schema import (
    AgentExecutionResult,
    AgentToolInvocation,
    ChatCompletionRequest,
    ChatMessage,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

AGENT_DISABLED = "The agent is disabled in the current configuration."
AGENT_CANCELLED = "The agent run was cancelled."
AGENT_UNREACHABLE = "The agent could not reach the model; see logs for details."
AGENT_EXHAUSTED = "The agent exceeded the maximum number of iterations without a final answer."


def resolve_workspace(configured: str | None) -> str:
    """Return the absolute workspace root; blank or ``.`` means the current directory."""
    base = os.getcwd()
    if not configured or configured.strip() in ("", "."):
        return base
    return os.path.abspath(os.path.join(base, os.path.expanduser(configured)))


def build_system_prompt(workspace_root: str) -> str:
    root = workspace_root.replace("\\", "/")
    return (
        f"You are RapidCLI, a development agent with tools to explore and modify files inside "
        f"'{root}'. Before proposing changes, inspect the relevant code with the available tools "
        "(list_directory, read_file). Only modify files when necessary and explain each change "
        "clearly. Your final answer must include a concise summary, the files you modified and "
        "the recommended next steps."
    )


class AgentLoop:
    """Bounded request / tool-dispatch loop over a sandboxed workspace."""

    def __init__(self, client: BaseModelClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def _build_request(
        self, conversation: List[ChatMessage], tools: List[ToolDefinition]
    ) -> ChatCompletionRequest:
        cfg = self.settings
        return ChatCompletionRequest(
            model=cfg.AGENT_MODEL or cfg.MODEL,
            messages=list(conversation),
            stream=False,
            temperature=cfg.TEMPERATURE,
            top_p=cfg.TOP_P,
            max_tokens=cfg.MAX_TOKENS,
            frequency_penalty=cfg.FREQUENCY_PENALTY,
            presence_penalty=cfg.PRESENCE_PENALTY,
            tools=list(tools),
        )

    def run(self, objective: str, cancel: CancellationToken | None = None) -> AgentExecutionResult:
        """
        Drive the model toward a final answer for *objective*.

        Parameters
        ----------
        objective: str
            The goal handed to the model as the user message.
        cancel: CancellationToken | None
            Checked before every iteration.

        Returns
        -------
        AgentExecutionResult
            ``completed`` is True only when the model answered with plain content within
            ``AGENT_MAX_ITERATIONS`` iterations.  Every tool invocation made is returned either way.
        """
        if not self.settings.AGENT_ENABLED:
            return AgentExecutionResult.failure(AGENT_DISABLED, [])

        workspace = resolve_workspace(self.settings.AGENT_WORKING_DIRECTORY)
        dispatcher = FileSystemToolDispatcher(workspace, self.settings.AGENT_ALLOW_FILE_WRITES)

        conversation: List[ChatMessage] = [
            ChatMessage(role="system", content=build_system_prompt(str(dispatcher.root))),
            ChatMessage(role="user", content=objective),
        ]
        invocations: List[AgentToolInvocation] = []
        max_iterations = max(1, self.settings.AGENT_MAX_ITERATIONS)

        for iteration in range(1, max_iterations + 1):
            if cancel is not None and cancel.cancelled:
                return AgentExecutionResult.failure(AGENT_CANCELLED, invocations, iteration - 1)

            request = self._build_request(conversation, dispatcher.tool_definitions)
            try:
                response = self.client.create_chat_completion(request, cancel)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Agent model call failed on iteration %d", iteration)
                if cancel is not None and cancel.cancelled:
                    return AgentExecutionResult.failure(AGENT_CANCELLED, invocations, iteration)
                return AgentExecutionResult.failure(AGENT_UNREACHABLE, invocations, iteration)

            message = response.first_message
            if message is None:
                continue

            if message.tool_calls:
                conversation.append(message)
                for call in message.tool_calls:
                    invocation = dispatcher.execute(call)
                    invocations.append(invocation)
                    conversation.append(
                        ChatMessage(role="tool", tool_call_id=call.id, content=invocation.output)
                    )
                    if invocation.is_error:
                        logger.warning(
                            "Tool call %s returned an error: %s",
                            call.function.name,
                            invocation.output,
                        )
                    else:
                        logger.info("Tool call %s succeeded", call.function.name)
                continue

            conversation.append(message)
            if message.content.strip():
                return AgentExecutionResult.success(message.content, invocations, iteration)

        logger.warning("Agent stopped after %d iterations", max_iterations)
        return AgentExecutionResult.failure(AGENT_EXHAUSTED, invocations, max_iterations)
