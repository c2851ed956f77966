"""Ordered message log owned by the conversation controller.

The log is append-only apart from three operations: mutating the last
message, removing the last message and clearing everything. It does no
locking of its own; the controller is its only writer.
"""

from collections.abc import Callable, Iterator

from ..errors import EmptyLogError
from .models import ChatMessage


class MessageLog:
    """Sequence of chat messages in send order."""

    def __init__(self, messages: list[ChatMessage] | None = None):
        self._messages: list[ChatMessage] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> ChatMessage:
        return self._messages[index]

    @property
    def last(self) -> ChatMessage | None:
        """The most recently appended message, or None when empty."""
        return self._messages[-1] if self._messages else None

    def append(self, message: ChatMessage) -> None:
        """Add a message to the end of the log."""
        if message is None:
            raise TypeError("Cannot append None to the message log")
        self._messages.append(message)

    def update_last(self, mutator: Callable[[ChatMessage], None]) -> ChatMessage:
        """Apply mutator to the last message in place.

        Args:
            mutator: Callable receiving the last message

        Returns:
            The mutated message

        Raises:
            EmptyLogError: If the log is empty
        """
        if not self._messages:
            raise EmptyLogError("update last message")
        message = self._messages[-1]
        mutator(message)
        return message

    def remove_last(self) -> ChatMessage:
        """Remove and return the last message.

        Raises:
            EmptyLogError: If the log is empty
        """
        if not self._messages:
            raise EmptyLogError("remove last message")
        return self._messages.pop()

    def clear(self) -> None:
        """Remove every message."""
        self._messages.clear()

    def pending_count(self) -> int:
        """Number of messages still waiting for content."""
        return sum(1 for message in self._messages if message.pending)

    def snapshot(self) -> tuple[ChatMessage, ...]:
        """Return deep copies of all messages, safe to hand to observers."""
        return tuple(message.model_copy(deep=True) for message in self._messages)
