"""
Session-aware chat coordinator.

Owns the active :class:`ConversationSession`: its message log, agent state and persistence.  Every
mutation refreshes the session timestamps and writes the snapshot to the :class:`SessionStore` before
returning.  History compaction runs after each assistant message.
"""

import json
import logging
import threading
import uuid
from datetime import datetime
from typing import (
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
)

from rapidcli.agent.model_client import BaseModelClient
from rapidcli.config import (
    Settings,
    snapshot,
)
from rapidcli.core.cancellation import CancellationToken
from rapidcli.core.schema import (
    AgentToolInvocation,
    ChatCompletionRequest,
    ChatMessage,
    ConversationSession,
)
from rapidcli.memory.conversation import ConversationManager
from rapidcli.memory.history_compactor import (
    CompactionResult,
    HistoryCompactor,
)
from rapidcli.memory.session_store import (
    SessionStore,
    normalize_id,
)

logger = logging.getLogger(__name__)

# Agent tools whose ``path`` argument names a workspace file
FILE_TOOLS = ("read_file", "write_file", "append_file")


def new_session_id() -> str:
    return f"session-{datetime.now():%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"


class ChatService:
    """Coordinates the conversation, its compaction and its persistence."""

    def __init__(
        self,
        client: BaseModelClient,
        store: SessionStore,
        settings: Settings,
        compactor: Optional[HistoryCompactor] = None,
        conversation: Optional[ConversationManager] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.settings = settings
        self.compactor = compactor or HistoryCompactor(client, settings)
        self.conversation = conversation or ConversationManager()
        self._lock = threading.RLock()
        self._session: Optional[ConversationSession] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    @property
    def session(self) -> ConversationSession:
        if self._session is None:
            return self.initialize_session()
        return self._session

    def initialize_session(self, session_id: Optional[str] = None) -> ConversationSession:
        """Start a fresh session and persist it."""
        with self._lock:
            sid = normalize_id(session_id) if session_id else new_session_id()
            self._session = ConversationSession(id=sid)
            self.conversation.clear()
            self._persist()
            logger.info("Started session %s", sid)
            return self._session

    def reset(self) -> ConversationSession:
        return self.initialize_session()

    def load_session(self, session_id: str) -> bool:
        """Make the stored session *session_id* the active one. Returns False if it does not exist."""
        with self._lock:
            loaded = self.store.load(session_id)
            if loaded is None:
                return False
            self._session = loaded
            self.conversation.load(loaded.messages)
            logger.info("Loaded session %s (%d messages)", loaded.id, len(loaded.messages))
            return True

    def save_snapshot(self, name: str) -> str:
        """Persist the active session under *name*, which becomes its id. Returns the normalized id."""
        with self._lock:
            session = self.session
            session.id = normalize_id(name)
            self._persist()
            return session.id

    def history(self) -> Tuple[ChatMessage, ...]:
        """Current message snapshot; does not lock."""
        return self.conversation.messages

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_user_message(self, content: str) -> None:
        with self._lock:
            self._ensure_session()
            self.conversation.add_message(ChatMessage(role="user", content=content))
            self._persist()

    def add_assistant_message(self, content: str, cancel: CancellationToken | None = None) -> None:
        with self._lock:
            self._ensure_session()
            self.conversation.add_message(ChatMessage(role="assistant", content=content))
            self._persist()
            self.compact_history(cancel)

    def record_thought(self, entry: str) -> None:
        with self._lock:
            self.session.agent_state.add_thought(entry)
            self._persist()

    def register_tool_usage(self, tool_name: str) -> None:
        with self._lock:
            session = self.session
            if tool_name not in session.tools_used:
                session.tools_used.append(tool_name)
            session.agent_state.add_active_tool(tool_name)
            self._persist()

    def register_agent_invocations(self, invocations: Iterable[AgentToolInvocation]) -> None:
        """Record the tools and files touched during an agent run."""
        with self._lock:
            state = self.session.agent_state
            for invocation in invocations:
                state.add_active_tool(invocation.tool_name)
                if invocation.tool_name in FILE_TOOLS and not invocation.is_error:
                    path = _path_argument(invocation.arguments)
                    if path:
                        state.add_loaded_file(path)
            self._persist()

    def compact_history(self, cancel: CancellationToken | None = None) -> Optional[CompactionResult]:
        """Condense the history if it is over budget."""
        with self._lock:
            self._ensure_session()
            result = self.compactor.compact(self.conversation.messages, cancel)
            if result is None:
                return None
            self.conversation.load(result.messages)
            state = self.session.agent_state
            state.last_summary = result.summary
            state.add_thought(f"Condensed {result.condensed_count} earlier messages into a summary.")
            self._persist()
            return result

    # ------------------------------------------------------------------
    # Plain chat
    # ------------------------------------------------------------------
    def build_request(self, stream: bool) -> ChatCompletionRequest:
        cfg = self.settings
        return ChatCompletionRequest(
            model=cfg.MODEL,
            messages=list(self.conversation.messages),
            stream=stream,
            temperature=cfg.TEMPERATURE,
            top_p=cfg.TOP_P,
            max_tokens=cfg.MAX_TOKENS,
            frequency_penalty=cfg.FREQUENCY_PENALTY,
            presence_penalty=cfg.PRESENCE_PENALTY,
        )

    def reply(self, message: str, cancel: CancellationToken | None = None) -> str:
        """Send *message* and return the full (non-streamed) answer."""
        logger.info("Dispatching user message with %d characters", len(message))
        self.add_user_message(message)
        response = self.client.create_chat_completion(self.build_request(stream=False), cancel)
        answer = response.first_message.content if response.first_message else ""
        self.add_assistant_message(answer, cancel)
        return answer

    def stream_reply(self, message: str, cancel: CancellationToken | None = None) -> Iterator[str]:
        """
        Send *message* and yield the answer as it arrives.

        Whatever was received is committed to history when the stream ends, including when it stops
        early because of cancellation, an error, or the consumer closing the generator.
        """
        logger.info("Streaming reply for message with %d characters", len(message))
        self.add_user_message(message)
        request = self.build_request(stream=True)
        parts: List[str] = []
        try:
            for chunk in self.client.stream_chat_completion(request, cancel):
                content = chunk.content
                if content:
                    parts.append(content)
                    yield content
                if chunk.finish_reason or (cancel is not None and cancel.cancelled):
                    break
        finally:
            self.add_assistant_message("".join(parts), cancel)

    def _ensure_session(self) -> None:
        if self._session is None:
            self.initialize_session()

    # ------------------------------------------------------------------
    def _persist(self) -> None:
        session = self._session
        if session is None:
            return
        session.messages = list(self.conversation.messages)
        session.agent_state.configuration_snapshot = snapshot(self.settings)
        session.touch()
        try:
            self.store.save(session)
        except OSError:
            logger.exception("Could not persist session %s", session.id)


def _path_argument(arguments: str) -> Optional[str]:
    try:
        parsed = json.loads(arguments or "{}")
    except ValueError:
        return None
    path = parsed.get("path") if isinstance(parsed, dict) else None
    return path if isinstance(path, str) and path.strip() else None
