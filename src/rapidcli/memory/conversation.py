"""Ordered in-memory message log for the active conversation."""

from typing import (
    Iterable,
    Tuple,
)

from rapidcli.core.schema import ChatMessage


class ConversationManager:
    """
    Holds the messages of the active conversation.

    Every change swaps in a new tuple, so a snapshot taken from :attr:`messages` stays valid while a
    writer appends or replaces the history.
    """

    def __init__(self, messages: Iterable[ChatMessage] = ()) -> None:
        self._messages: Tuple[ChatMessage, ...] = tuple(messages)

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return self._messages

    def __len__(self) -> int:
        return len(self._messages)

    def add_message(self, message: ChatMessage) -> None:
        self._messages = self._messages + (message,)

    def clear(self) -> None:
        self._messages = ()

    def load(self, messages: Iterable[ChatMessage]) -> None:
        """Replace the whole history."""
        self._messages = tuple(messages)
