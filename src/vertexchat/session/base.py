from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from ..cancellation import CancellationToken
from .models import ChatResponse, ChatSession, ResponseChunk


class SessionClient(ABC):
    """Abstract base class for conversational model backends.

    This module hides the design decision of which backend serves the chat.
    Implementations must handle backend-specific details like:
    - API client setup and authentication
    - Where the accumulated conversation turns live
    - Translating backend exceptions into vertexchat errors
    - Honouring cancellation tokens between upstream calls and chunks

    Supports async context manager protocol for proper resource cleanup:
        async with client:
            session = client.start_session("gemini-1.5-flash")
            response = await client.send_once(session, "Hello")
        # Automatically cleaned up
    """

    @abstractmethod
    def start_session(self, model_identifier: str) -> ChatSession:
        """Create a fresh session with no prior turns.

        No network call is made.

        Args:
            model_identifier: Backend model name

        Returns:
            New session handle
        """
        pass

    @abstractmethod
    async def send_once(
        self,
        session: ChatSession,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> ChatResponse:
        """Send a prompt and wait for the complete reply.

        Args:
            session: Session created by this client
            prompt: Text to send
            token: Optional cancellation token

        Returns:
            ChatResponse; its text may be None

        Raises:
            NetworkFailureError: Backend unreachable
            BackendError: Backend reported an error
            ChatCancelledError: The token was cancelled
        """
        pass

    @abstractmethod
    def send_streaming(
        self,
        session: ChatSession,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[ResponseChunk]:
        """Send a prompt and stream the reply.

        The returned iterator is lazy, finite and cannot be restarted. Nothing
        is sent until iteration begins. Iteration may fail part-way with the
        same errors as send_once.

        Args:
            session: Session created by this client
            prompt: Text to send
            token: Optional cancellation token

        Returns:
            Async iterator of ResponseChunk
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "SessionClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            # Suppress harmless cleanup errors from httpx/anyio
            if "Event loop is closed" not in str(e):
                raise
