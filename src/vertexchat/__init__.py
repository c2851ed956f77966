"""
vertexchat: an asyncio chat client for Gemini and OpenAI-compatible backends.

The conversation controller keeps the message log, streams replies into it
and cancels or replaces requests still in flight.
"""

__version__ = "0.1.0"

from .cancellation import CancellationToken
from .chat import (
    ChatMessage,
    ConversationController,
    ConversationSnapshot,
    ConversationState,
    MessageLog,
    Participant,
)
from .config import ConfigProvider, RemoteConfigProvider, StaticConfigProvider
from .errors import (
    BackendError,
    ChatCancelledError,
    ChatError,
    ConfigurationError,
    EmptyLogError,
    NetworkFailureError,
)
from .session import ChatResponse, ChatSession, ResponseChunk, SessionClient, create_session_client

__all__ = [
    "CancellationToken",
    "ChatMessage",
    "ConversationController",
    "ConversationSnapshot",
    "ConversationState",
    "MessageLog",
    "Participant",
    "ConfigProvider",
    "RemoteConfigProvider",
    "StaticConfigProvider",
    "BackendError",
    "ChatCancelledError",
    "ChatError",
    "ConfigurationError",
    "EmptyLogError",
    "NetworkFailureError",
    "ChatResponse",
    "ChatSession",
    "ResponseChunk",
    "SessionClient",
    "create_session_client",
]
