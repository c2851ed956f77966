"""Data models for the conversation core.

Hides the internal representation of chat turns and of the state snapshots
published to observers.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class Participant(str, Enum):
    """Who authored a chat message."""

    USER = "user"
    SYSTEM = "system"  # The model backend


class ConversationState(str, Enum):
    """What the controller is doing right now."""

    IDLE = "idle"
    SENDING = "sending"      # One-shot request in flight
    STREAMING = "streaming"  # Streaming request in flight


class ChatMessage(BaseModel):
    """A single turn in the message log.

    The text of a pending system message grows in place while a reply streams
    in, so this model is deliberately mutable. Observers only ever receive
    copies (see ConversationSnapshot).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    text: str = Field(default="", description="Message text")
    participant: Participant = Field(description="Author of the message")
    pending: bool = Field(default=False, description="Waiting for backend content")
    created_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        """Create a message typed by the user."""
        return cls(text=text, participant=Participant.USER)

    @classmethod
    def pending_reply(cls) -> "ChatMessage":
        """Create an empty system placeholder awaiting a reply."""
        return cls(participant=Participant.SYSTEM, pending=True)


class ConversationSnapshot(BaseModel):
    """Immutable view of the controller state at one point in time."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    messages: tuple[ChatMessage, ...] = Field(default=())
    busy: bool = Field(default=False)
    state: ConversationState = Field(default=ConversationState.IDLE)
    error: Exception | None = Field(default=None)

    @property
    def has_error(self) -> bool:
        """True when there is an error worth showing to the user."""
        return self.error is not None
