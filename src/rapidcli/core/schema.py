"""
Schema definitions for model <-> agent <-> session messages.

These data models serve as the contract between the model provider, the agent loop, the chat
coordinator and the session store.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.
"""

from __future__ import annotations

from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Literal,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Chat messages & tool calls
# ---------------------------------------------------------------------------
class ToolCallFunction(BaseModel):
    """The function a tool call targets, with JSON-encoded arguments."""

    name: str = ""
    arguments: str = ""


class ToolCall(BaseModel):
    """A call that the model wants the agent to execute."""

    id: str = ""
    type: str = "function"
    function: ToolCallFunction = Field(default_factory=ToolCallFunction)


Role = Literal["system", "user", "assistant", "tool"]


class ChatMessage(BaseModel):
    """A single message in a chat style conversation."""

    role: Role
    content: str = ""
    name: Optional[str] = None
    tool_call_id: Optional[str] = Field(None, description="Links a tool result to its call")
    tool_calls: Optional[List[ToolCall]] = None

    @field_validator("content", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        # Providers send ``"content": null`` alongside tool calls
        return "" if value is None else value


class ToolFunctionDefinition(BaseModel):
    """Function contract for a tool definition."""

    name: str
    description: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    """A tool that the model can request via tool calls."""

    type: str = "function"
    function: ToolFunctionDefinition


# ---------------------------------------------------------------------------
# Provider wire models
# ---------------------------------------------------------------------------
class ChatCompletionRequest(BaseModel):
    """Payload necessary to request a chat completion."""

    model: str
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: bool = False
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    tools: Optional[List[ToolDefinition]] = None

    def to_payload(self) -> Dict[str, Any]:
        """Serialise for the wire, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class ChatCompletionChoice(BaseModel):
    """A single choice within a non-streamed completion."""

    index: int = 0
    message: ChatMessage = Field(default_factory=lambda: ChatMessage(role="assistant"))
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """A full chat completion as returned when streaming is disabled."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    choices: List[ChatCompletionChoice] = Field(default_factory=list)

    @property
    def first_message(self) -> ChatMessage | None:
        """The message of the first choice, if any."""
        return self.choices[0].message if self.choices else None


class ToolCallFunctionDelta(BaseModel):
    """Function-specific fragment of a streamed tool call."""

    name: Optional[str] = None
    arguments: Optional[str] = None


class ToolCallDelta(BaseModel):
    """Fragment of a tool call emitted while streaming."""

    index: Optional[int] = None
    id: Optional[str] = None
    type: Optional[str] = None
    function: Optional[ToolCallFunctionDelta] = None


class ChunkDelta(BaseModel):
    """Incremental message content carried by a streamed chunk."""

    role: Optional[str] = None
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCallDelta]] = None


class ChatCompletionChunkChoice(BaseModel):
    """A single incremental choice."""

    index: int = 0
    delta: Optional[ChunkDelta] = None
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """One piece of a streamed chat completion."""

    model_config = ConfigDict(extra="ignore")

    choices: List[ChatCompletionChunkChoice] = Field(default_factory=list)

    @property
    def content(self) -> str | None:
        """Incremental text of the first choice."""
        if self.choices and self.choices[0].delta is not None:
            return self.choices[0].delta.content
        return None

    @property
    def finish_reason(self) -> str | None:
        """Finish reason of the first choice."""
        return self.choices[0].finish_reason if self.choices else None


# ---------------------------------------------------------------------------
# Agent run results
# ---------------------------------------------------------------------------
class AgentToolInvocation(BaseModel):
    """Execution details of a single tool call made during an agent run."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    arguments: str
    output: str
    is_error: bool = False

    @classmethod
    def success(cls, tool_name: str, arguments: str, output: str) -> "AgentToolInvocation":
        """A successful invocation."""
        return cls(tool_name=tool_name, arguments=arguments, output=output, is_error=False)

    @classmethod
    def failure(cls, tool_name: str, arguments: str, output: str) -> "AgentToolInvocation":
        """A failed invocation; *output* carries the error message."""
        return cls(tool_name=tool_name, arguments=arguments, output=output, is_error=True)


class AgentExecutionResult(BaseModel):
    """Outcome of an agent run."""

    model_config = ConfigDict(frozen=True)

    final_response: str
    tool_invocations: List[AgentToolInvocation] = Field(default_factory=list)
    completed: bool = False
    iterations: int = 0

    @classmethod
    def success(
        cls, final_response: str, invocations: List[AgentToolInvocation], iterations: int
    ) -> "AgentExecutionResult":
        """The model produced a final answer within the iteration budget."""
        return cls(
            final_response=final_response,
            tool_invocations=list(invocations),
            completed=True,
            iterations=iterations,
        )

    @classmethod
    def failure(
        cls, message: str, invocations: List[AgentToolInvocation], iterations: int = 0
    ) -> "AgentExecutionResult":
        """The run stopped without a final answer; *message* explains why."""
        return cls(
            final_response=message,
            tool_invocations=list(invocations),
            completed=False,
            iterations=iterations,
        )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
class AgentState(BaseModel):
    """Internal state of the agent for a conversation session."""

    model_config = ConfigDict(populate_by_name=True)

    THOUGHT_LOG_CAPACITY: ClassVar[int] = 50

    loaded_files: List[str] = Field(default_factory=list, alias="loadedFiles")
    active_tools: List[str] = Field(default_factory=list, alias="activeTools")
    configuration_snapshot: Dict[str, str] = Field(
        default_factory=dict, alias="configurationSnapshot"
    )
    thought_log: List[str] = Field(default_factory=list, alias="thoughtLog")
    last_summary: Optional[str] = Field(None, alias="lastSummary")
    last_updated: datetime = Field(default_factory=utcnow, alias="lastUpdated")

    @field_validator("thought_log")
    @classmethod
    def _cap_thought_log(cls, value: List[str]) -> List[str]:
        return value[-cls.THOUGHT_LOG_CAPACITY :]

    def add_thought(self, entry: str) -> None:
        """Append to the thought log, evicting the oldest entries beyond capacity."""
        self.thought_log.append(entry)
        overflow = len(self.thought_log) - self.THOUGHT_LOG_CAPACITY
        if overflow > 0:
            del self.thought_log[:overflow]
        self.last_updated = utcnow()

    def add_loaded_file(self, path: str) -> None:
        """Remember a file read or written by the agent (kept unique, in first-seen order)."""
        if path and path not in self.loaded_files:
            self.loaded_files.append(path)
            self.last_updated = utcnow()

    def add_active_tool(self, name: str) -> None:
        """Remember a tool used in this session (kept unique)."""
        if name and name not in self.active_tools:
            self.active_tools.append(name)
            self.last_updated = utcnow()


class ConversationSessionSummary(BaseModel):
    """Lightweight projection of a stored session."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    message_count: int = Field(0, alias="messageCount")
    tool_count: int = Field(0, alias="toolCount")


class ConversationSession(BaseModel):
    """A persisted conversation session."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    messages: List[ChatMessage] = Field(default_factory=list)
    agent_state: AgentState = Field(default_factory=AgentState, alias="agentState")
    tools_used: List[str] = Field(default_factory=list, alias="toolsUsed")

    def touch(self) -> None:
        """Mark the session as modified now."""
        self.updated_at = utcnow()

    def summary(self) -> ConversationSessionSummary:
        """Summarise for listings."""
        return ConversationSessionSummary(
            id=self.id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            message_count=len(self.messages),
            tool_count=len(self.tools_used),
        )

    def to_json(self) -> str:
        """Serialise using the snapshot's camelCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
