"""
Token-budget driven history compaction.

When the estimated size of a conversation exceeds the configured budget, everything except the most
recent messages is condensed into a single system message by a low-temperature summarization call.
A failed or empty summary leaves the history untouched: the conversation is allowed to keep growing
rather than lose messages.
"""

import logging
from dataclasses import dataclass
from typing import (
    List,
    Optional,
    Sequence,
)

from rapidcli.agent.model_client import BaseModelClient
from rapidcli.config import Settings
from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.core.schema import (
    ChatCompletionRequest,
    ChatMessage,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
SUMMARY_MESSAGE_NAME = "history_summary"
SUMMARY_PREFIX = "Summary of the earlier conversation:\n"
SUMMARY_INSTRUCTIONS = (
    "Summarize the following conversation for an assistant that will continue it. "
    "Focus on the highlights: goals, decisions, files and tools involved, open questions. "
    "Be concise and use bullet points."
)


@dataclass(frozen=True)
class CompactionResult:
    """The condensed history and what it replaced."""

    messages: List[ChatMessage]
    summary: str
    condensed_count: int


def estimate_tokens(messages: Sequence[ChatMessage]) -> int:
    """Rough token count: total content length divided by four."""
    return sum(len(m.content or "") for m in messages) // CHARS_PER_TOKEN


def is_summary_message(message: ChatMessage) -> bool:
    return message.role == "system" and message.name == SUMMARY_MESSAGE_NAME


def format_transcript(messages: Sequence[ChatMessage]) -> str:
    return "\n".join(f"[{m.role}] {m.content}" for m in messages)


class HistoryCompactor:
    """Summarizes old messages once the conversation outgrows its token budget."""

    def __init__(self, client: BaseModelClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def needs_compaction(self, messages: Sequence[ChatMessage]) -> bool:
        return estimate_tokens(messages) > self.settings.HISTORY_TOKEN_BUDGET

    def compact(
        self, messages: Sequence[ChatMessage], cancel: CancellationToken | None = None
    ) -> Optional[CompactionResult]:
        """
        Return the condensed history, or ``None`` when nothing should change.

        ``None`` covers: under budget, nothing outside the tail window, a prefix that is already
        just a summary, and any failure of the summarization call.
        """
        if not self.needs_compaction(messages):
            return None

        tail_size = max(0, self.settings.HISTORY_TAIL_WINDOW)
        split = max(0, len(messages) - tail_size)
        prefix, tail = list(messages[:split]), list(messages[split:])
        if not prefix or all(is_summary_message(m) for m in prefix):
            logger.debug("History over budget but nothing left to condense")
            return None

        summary = self._summarize(prefix, cancel)
        if not summary:
            return None

        condensed = ChatMessage(
            role="system", name=SUMMARY_MESSAGE_NAME, content=SUMMARY_PREFIX + summary
        )
        logger.info("Condensed %d messages into a summary", len(prefix))
        return CompactionResult(
            messages=[condensed] + tail, summary=summary, condensed_count=len(prefix)
        )

    def _summarize(
        self, prefix: Sequence[ChatMessage], cancel: CancellationToken | None
    ) -> Optional[str]:
        cfg = self.settings
        request = ChatCompletionRequest(
            model=cfg.MODEL,
            messages=[
                ChatMessage(role="system", content=SUMMARY_INSTRUCTIONS),
                ChatMessage(role="user", content=format_transcript(prefix)),
            ],
            stream=False,
            temperature=cfg.SUMMARY_TEMPERATURE,
            max_tokens=cfg.MAX_TOKENS,
        )
        try:
            response = self.client.create_chat_completion(request, cancel)
        except OperationCancelled:
            return None
        except Exception:  # pylint: disable=broad-except
            logger.exception("History summarization failed; keeping full history")
            return None

        message = response.first_message
        summary = (message.content if message else "").strip()
        if not summary:
            logger.warning("History summarization returned no content")
            return None
        return summary
