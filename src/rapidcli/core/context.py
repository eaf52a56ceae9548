"""Application wiring: builds every service once and hands them around explicitly."""

import os
from dataclasses import dataclass
from typing import (
    Optional,
    Sequence,
)

from rapidcli.agent.agent_loop import AgentLoop
from rapidcli.agent.assistant import Assistant
from rapidcli.agent.chat_service import ChatService
from rapidcli.agent.model_client import (
    BaseModelClient,
    load_client,
)
from rapidcli.config import Settings
from rapidcli.memory.history_compactor import HistoryCompactor
from rapidcli.memory.session_store import SessionStore
from rapidcli.tools.intent_classifier import IntentClassifier
from rapidcli.tools.orchestrator import ToolOrchestrator
from rapidcli.tools.providers import (
    BaseToolProvider,
    default_providers,
)
from rapidcli.tools.registry import ToolRegistry


@dataclass
class AppContext:
    """The services of one running application."""

    settings: Settings
    client: BaseModelClient
    store: SessionStore
    registry: ToolRegistry
    orchestrator: ToolOrchestrator
    chat: ChatService
    agent: AgentLoop
    assistant: Assistant


def build_context(
    config: Optional[Settings] = None,
    client: Optional[BaseModelClient] = None,
    providers: Optional[Sequence[BaseToolProvider]] = None,
) -> AppContext:
    """Wire the application; *client* and *providers* can be swapped for fakes in tests."""
    settings = config or Settings()
    client = client or load_client(settings)
    providers = default_providers(settings) if providers is None else providers

    store = SessionStore(os.path.join(os.path.expanduser(settings.DATA_DIR), "sessions"))
    registry = ToolRegistry(settings, providers)
    orchestrator = ToolOrchestrator(registry, IntentClassifier(), settings)
    chat = ChatService(client, store, settings, HistoryCompactor(client, settings))
    agent = AgentLoop(client, settings)
    assistant = Assistant(chat, orchestrator, agent, settings)
    return AppContext(
        settings=settings,
        client=client,
        store=store,
        registry=registry,
        orchestrator=orchestrator,
        chat=chat,
        agent=agent,
        assistant=assistant,
    )
