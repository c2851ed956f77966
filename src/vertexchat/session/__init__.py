from .base import SessionClient
from .factory import create_session_client
from .models import ChatResponse, ChatSession, ResponseChunk, Turn
from .providers import GeminiSessionClient, OpenAISessionClient

__all__ = [
    "SessionClient",
    "create_session_client",
    "ChatResponse",
    "ChatSession",
    "ResponseChunk",
    "Turn",
    "GeminiSessionClient",
    "OpenAISessionClient",
]
