"""Data models exchanged with session clients."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class Turn(BaseModel):
    """One completed exchange entry recorded in a session."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the author: 'user' or 'model'")
    text: str = Field(description="Text of the turn")


class ChatResponse(BaseModel):
    """Complete reply to a one-shot send."""

    model_config = ConfigDict(frozen=True)

    text: str | None = Field(
        default=None,
        description="Reply text; None when the backend returned none (e.g. safety filtering)"
    )
    model: str = Field(description="Model that generated the reply")
    finish_reason: str | None = Field(default=None, description="Why generation stopped")
    usage: dict[str, int] | None = Field(default=None, description="Token usage information")


class ResponseChunk(BaseModel):
    """One partial unit of a streamed reply."""

    model_config = ConfigDict(frozen=True)

    text: str | None = Field(default=None, description="Partial text; None for metadata-only chunks")
    finish_reason: str | None = Field(default=None, description="Set on the final chunk")
    usage: dict[str, int] | None = Field(default=None, description="Token usage, usually on the final chunk")


@dataclass
class ChatSession:
    """Opaque handle on one backend conversation.

    The conversation controller only passes this object back to the session
    client that created it. Completed turns are recorded by the client.
    """

    model: str
    backend: Any = None  # Provider-side chat object, if the provider has one
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    turns: list[Turn] = field(default_factory=list)

    def record_exchange(self, prompt: str, reply: str) -> None:
        """Append a successful prompt/reply pair to the session history."""
        self.turns.append(Turn(role="user", text=prompt))
        self.turns.append(Turn(role="model", text=reply))
