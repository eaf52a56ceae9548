"""
The objective pipeline behind each conversational turn.

One objective is processed at a time: the user message is recorded, the tool orchestrator gets a
chance to answer or enrich it, and otherwise the agent loop takes over.  Every step is recorded in
the session so the conversation and its thought log survive a restart.
"""

import logging
import threading
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    List,
    Optional,
)

from rapidcli.agent.agent_loop import (
    AGENT_DISABLED,
    AgentLoop,
)
from rapidcli.agent.chat_service import ChatService
from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.core.schema import AgentExecutionResult
from rapidcli.tools.orchestrator import (
    OrchestrationResult,
    ToolOrchestrator,
)

logger = logging.getLogger(__name__)

CHECKING_TOOLS = "Checking whether a registered tool should run before answering..."
PREPARING_AGENT = "Preparing the objective for the agent and planning the next steps..."
EMPTY_OBJECTIVE = "Please enter an objective."
CANCELLED = "Operation cancelled."


@dataclass
class TurnOutcome:
    """Everything a surface needs to render one turn."""

    response_text: str
    orchestration: Optional[OrchestrationResult] = None
    agent_result: Optional[AgentExecutionResult] = None
    thoughts: List[str] = field(default_factory=list)
    cancelled: bool = False


class Assistant:
    """Routes objectives through tool orchestration and the agent loop."""

    def __init__(
        self,
        chat: ChatService,
        orchestrator: ToolOrchestrator,
        agent: AgentLoop,
        settings: Settings,
    ) -> None:
        self.chat = chat
        self.orchestrator = orchestrator
        self.agent = agent
        self.settings = settings
        self._lock = threading.Lock()

    def handle_objective(
        self, objective: str, cancel: CancellationToken | None = None
    ) -> TurnOutcome:
        """Process one objective end to end."""
        if not objective or not objective.strip():
            return TurnOutcome(response_text=EMPTY_OBJECTIVE)

        with self._lock:
            outcome = TurnOutcome(response_text="")
            try:
                self._handle(objective, cancel, outcome)
            except OperationCancelled:
                logger.info("Objective cancelled")
                outcome.response_text = CANCELLED
                outcome.cancelled = True
                self.chat.add_assistant_message(CANCELLED)
            return outcome

    def _think(self, outcome: TurnOutcome, entry: str) -> None:
        outcome.thoughts.append(entry)
        self.chat.record_thought(entry)

    def _handle(self, objective: str, cancel: CancellationToken | None, outcome: TurnOutcome) -> None:
        self.chat.add_user_message(objective)
        self._think(outcome, CHECKING_TOOLS)

        orchestration = self.orchestrator.try_orchestrate(objective, cancel)
        outcome.orchestration = orchestration
        if orchestration.message:
            self._think(outcome, orchestration.message)
        if orchestration.tool_executed and orchestration.descriptor is not None:
            self.chat.register_tool_usage(orchestration.descriptor.display_name)

        if not self.settings.AGENT_ENABLED:
            outcome.response_text = AGENT_DISABLED
            self.chat.add_assistant_message(AGENT_DISABLED, cancel)
            return

        if orchestration.bypass_agent:
            outcome.response_text = orchestration.response_text or ""
            self.chat.add_assistant_message(outcome.response_text, cancel)
            return

        self._think(outcome, PREPARING_AGENT)
        result = self.agent.run(orchestration.agent_objective, cancel)
        outcome.agent_result = result
        self.chat.register_agent_invocations(result.tool_invocations)
        outcome.response_text = result.final_response
        self.chat.add_assistant_message(result.final_response, cancel)

    def run_agent(
        self, objective: str, cancel: CancellationToken | None = None
    ) -> AgentExecutionResult:
        """Run the agent directly on *objective*, skipping tool orchestration."""
        with self._lock:
            result = self.agent.run(objective, cancel)
            self.chat.register_agent_invocations(result.tool_invocations)
            return result
