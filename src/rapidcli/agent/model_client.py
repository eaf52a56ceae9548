"""
Model client interface for RapidCLI.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, chat
service, history compaction) stays provider-agnostic and talks to a :class:`BaseModelClient`.

We support two back-ends out of the box:

1. **Chutes** (or any OpenAI-compatible ``/v1/chat/completions`` endpoint) via httpx.
2. **OpenAI** via the official SDK.

Additional providers can be added by subclassing :class:`BaseModelClient` and registering via
:func:`register_client`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Callable,
    Iterator,
    Type,
)

import httpx
from pydantic import ValidationError

from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    check_cancelled,
)
from rapidcli.core.schema import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
)

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class ProviderError(RuntimeError):
    """Transport, authentication or model failure while talking to a provider."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CLIENT_REGISTRY: dict[str, Type["BaseModelClient"]] = {}


def register_client(name: str) -> Callable:
    """Decorator to register a model client class under *name*."""

    def wrapper(cls: Type["BaseModelClient"]) -> Type["BaseModelClient"]:
        _CLIENT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_client(config: Settings, name: str | None = None) -> "BaseModelClient":
    """
    Factory that returns an instantiated model client.

    Fallback order:
    1. *name* arg
    2. ``config.PROVIDER`` env/.env option
    3. default: ``"chutes"``
    """
    target = name or getattr(config, "PROVIDER", None) or "chutes"
    cls = _CLIENT_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Model provider '{target}' is not registered.")
    return cls(config)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Abstract chat completion client."""

    def __init__(self, config: Settings) -> None:
        self.config = config

    @abstractmethod
    def create_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> ChatCompletionResponse:
        """Return the full (non-streamed) completion for *request*."""

    @abstractmethod
    def stream_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> Iterator[ChatCompletionChunk]:
        """Yield completion chunks in order until the provider finishes or *cancel* fires."""


def sse_payload(line: str) -> str | None:
    """Strip the ``data:`` prefix from a server-sent-events line; ``None`` for blank lines."""
    line = line.strip()
    if not line:
        return None
    if line.lower().startswith("data:"):
        line = line[5:].lstrip()
    return line or None


def parse_chunk(payload: str) -> ChatCompletionChunk | None:
    """Decode a streamed chunk, logging and skipping malformed payloads."""
    try:
        return ChatCompletionChunk.model_validate_json(payload)
    except ValidationError:
        logger.warning("Failed to parse streaming chunk: %s", payload)
        return None


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
@register_client("chutes")
class ChatCompletionsClient(BaseModelClient):
    """OpenAI-compatible chat completions over httpx (Chutes by default)."""

    def __init__(self, config: Settings, transport: httpx.BaseTransport | None = None) -> None:
        super().__init__(config)
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self.config.MODEL_BASE_URL.rstrip("/") + "/v1/chat/completions"

    def _client(self) -> httpx.Client:
        headers = {"Content-Type": "application/json"}
        if self.config.CHUTES_API_KEY:
            headers["Authorization"] = f"Bearer {self.config.CHUTES_API_KEY}"
        return httpx.Client(
            timeout=self.config.REQUEST_TIMEOUT_SEC, headers=headers, transport=self._transport
        )

    def create_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> ChatCompletionResponse:
        check_cancelled(cancel)
        payload = request.model_copy(update={"stream": False}).to_payload()
        try:
            with self._client() as client:
                resp = client.post(self.endpoint, json=payload)
                resp.raise_for_status()
                return ChatCompletionResponse.model_validate(resp.json())
        except httpx.HTTPStatusError as e:
            logger.error("Chat completion failed with HTTP %s", e.response.status_code)
            raise ProviderError(f"Model provider returned HTTP {e.response.status_code}.") from e
        except httpx.HTTPError as e:
            logger.error("Chat completion request error: %s", str(e))
            raise ProviderError("Could not reach the model provider.") from e
        except (ValueError, ValidationError) as e:
            logger.error("Unexpected chat completion payload: %s", str(e))
            raise ProviderError("The model provider returned an unexpected response.") from e

    def stream_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> Iterator[ChatCompletionChunk]:
        check_cancelled(cancel)
        payload = request.model_copy(update={"stream": True}).to_payload()
        try:
            with self._client() as client:
                with client.stream("POST", self.endpoint, json=payload) as resp:
                    resp.raise_for_status()
                    for line in resp.iter_lines():
                        if cancel is not None and cancel.cancelled:
                            logger.debug("Stream cancelled by caller")
                            return
                        data = sse_payload(line)
                        if data is None:
                            continue
                        if data.upper() == DONE_SENTINEL:
                            return
                        chunk = parse_chunk(data)
                        if chunk is not None:
                            yield chunk
        except httpx.HTTPStatusError as e:
            logger.error("Streaming completion failed with HTTP %s", e.response.status_code)
            raise ProviderError(f"Model provider returned HTTP {e.response.status_code}.") from e
        except httpx.HTTPError as e:
            logger.error("Streaming request error: %s", str(e))
            raise ProviderError("Could not reach the model provider.") from e


@register_client("openai")
class OpenAIClient(BaseModelClient):
    """Chat completions through the official OpenAI SDK."""

    def _sdk(self):
        import openai  # pylint: disable=import-outside-toplevel

        return openai.OpenAI(
            api_key=self.config.OPENAI_API_KEY, timeout=self.config.REQUEST_TIMEOUT_SEC
        )

    def create_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> ChatCompletionResponse:
        check_cancelled(cancel)
        payload = request.model_copy(update={"stream": False}).to_payload()
        try:
            resp = self._sdk().chat.completions.create(**payload)
            return ChatCompletionResponse.model_validate(resp.model_dump())
        except Exception as e:  # pylint: disable=broad-except
            logger.error("OpenAI client error: %s", str(e))
            raise ProviderError("The OpenAI request failed.") from e

    def stream_chat_completion(
        self, request: ChatCompletionRequest, cancel: CancellationToken | None = None
    ) -> Iterator[ChatCompletionChunk]:
        check_cancelled(cancel)
        payload = request.model_copy(update={"stream": True}).to_payload()
        try:
            stream = self._sdk().chat.completions.create(**payload)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("OpenAI client error: %s", str(e))
            raise ProviderError("The OpenAI request failed.") from e

        try:
            with stream:
                for event in stream:
                    if cancel is not None and cancel.cancelled:
                        return
                    try:
                        chunk = ChatCompletionChunk.model_validate(event.model_dump())
                    except ValidationError:
                        logger.warning(
                            "Skipping malformed OpenAI chunk: %s", json.dumps(event.model_dump())
                        )
                        continue
                    yield chunk
        except Exception as e:  # pylint: disable=broad-except
            logger.error("OpenAI stream error: %s", str(e))
            raise ProviderError("The OpenAI stream was interrupted.") from e
