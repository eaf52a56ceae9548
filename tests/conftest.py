"""
Shared fixtures: hermetic settings and a scripted model client.

Run with:
$ pytest -q
"""

import json
from typing import (
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)

import pytest

from rapidcli.agent.model_client import BaseModelClient
from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    check_cancelled,
)
from rapidcli.core.schema import (
    ChatCompletionChoice,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ToolCall,
    ToolCallFunction,
)


def text_response(content: str) -> ChatCompletionResponse:
    """A completion whose first choice is plain assistant text."""

    return ChatCompletionResponse(
        choices=[ChatCompletionChoice(message=ChatMessage(role="assistant", content=content))]
    )


def tool_call_response(name: str, arguments: dict, call_id: str = "call-1") -> ChatCompletionResponse:
    """A completion asking the agent to run a single tool."""

    call = ToolCall(id=call_id, function=ToolCallFunction(name=name, arguments=json.dumps(arguments)))
    return ChatCompletionResponse(
        choices=[ChatCompletionChoice(message=ChatMessage(role="assistant", tool_calls=[call]))]
    )


def content_chunk(content: Optional[str], finish_reason: Optional[str] = None) -> ChatCompletionChunk:
    return ChatCompletionChunk.model_validate(
        {"choices": [{"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}]}
    )


Scripted = Union[ChatCompletionResponse, Exception]


class FakeModelClient(BaseModelClient):
    """Replays scripted responses and records every request it receives."""

    def __init__(
        self,
        config: Settings,
        responses: Iterable[Scripted] = (),
        chunks: Iterable[ChatCompletionChunk] = (),
        repeat_last: bool = False,
    ) -> None:
        super().__init__(config)
        self.responses: List[Scripted] = list(responses)
        self.chunks: List[ChatCompletionChunk] = list(chunks)
        self.repeat_last = repeat_last
        self.requests: List[ChatCompletionRequest] = []

    def create_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> ChatCompletionResponse:
        check_cancelled(cancel)
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("FakeModelClient ran out of scripted responses")
        scripted = self.responses[0] if self.repeat_last and len(self.responses) == 1 else self.responses.pop(0)
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    def stream_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> Iterator[ChatCompletionChunk]:
        check_cancelled(cancel)
        self.requests.append(request)
        for chunk in self.chunks:
            if cancel is not None and cancel.cancelled:
                return
            yield chunk


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path, workspace) -> Settings:
    """Settings isolated from the developer's environment and .env file."""

    return Settings(
        _env_file=None,
        DATA_DIR=str(tmp_path / "data"),
        AGENT_WORKING_DIRECTORY=str(workspace),
        TOOLS_REGISTRY_PATH=str(tmp_path / "agent.tools.yaml"),
        PROVIDER="chutes",
        MODEL_BASE_URL="https://llm.chutes.ai",
        CHUTES_API_KEY="test-key",
    )
