"""Google Gemini session client implementation.

Uses the official Google GenAI SDK chat sessions, on either Vertex AI or the
Gemini Developer API.
Reference: https://github.com/googleapis/python-genai

Note: Gemini can return empty responses due to safety filtering. Such replies
are surfaced as responses without text rather than as errors.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ...cancellation import CancellationToken, raise_if_cancelled
from ...errors import BackendError, ChatError, NetworkFailureError
from ..base import SessionClient
from ..models import ChatResponse, ChatSession, ResponseChunk

logger = logging.getLogger(__name__)

# Default safety settings - block only high-probability harm
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_ONLY_HIGH"),
]


def translate_error(error: Exception) -> ChatError | None:
    """Map a Google GenAI / transport exception to a vertexchat error.

    Returns None for exceptions that should propagate unchanged.
    """
    if isinstance(error, genai_errors.APIError):
        return BackendError(error.message or str(error), status_code=error.code)
    if isinstance(error, (httpx.TransportError, ConnectionError, asyncio.TimeoutError)):
        return NetworkFailureError(str(error) or error.__class__.__name__)
    return None


def extract_text(response: types.GenerateContentResponse) -> str | None:
    """Extract text from a Gemini response or chunk.

    Args:
        response: Gemini GenerateContentResponse

    Returns:
        Joined text parts, or None when the response carries no text
    """
    if response.candidates:
        candidate = response.candidates[0]
        if candidate.content and candidate.content.parts:
            texts = [part.text for part in candidate.content.parts if part.text and not part.thought]
            if texts:
                return "".join(texts)
    return None


def _finish_reason(response: types.GenerateContentResponse) -> str | None:
    if response.candidates and response.candidates[0].finish_reason:
        reason = response.candidates[0].finish_reason
        return getattr(reason, "value", str(reason))
    return None


def _usage(response: types.GenerateContentResponse) -> dict[str, int] | None:
    if not response.usage_metadata:
        return None
    return {
        "prompt_tokens": response.usage_metadata.prompt_token_count or 0,
        "completion_tokens": response.usage_metadata.candidates_token_count or 0,
        "total_tokens": response.usage_metadata.total_token_count or 0,
    }


class GeminiSessionClient(SessionClient):
    """Gemini session client.

    Hidden design decisions:
    - Google GenAI client initialization (Vertex AI or API key)
    - One SDK AsyncChat per session, which keeps the turn history
    - Relaxed safety settings
    - Error translation to the vertexchat taxonomy
    """

    def __init__(
        self,
        api_key: str | None = None,
        vertexai: bool = False,
        project: str | None = None,
        location: str = "us-central1",
        temperature: float | None = None,
        safety_settings: list[types.SafetySetting] | None = None,
        **client_kwargs: Any
    ):
        """Initialize Gemini session client.

        Args:
            api_key: Gemini Developer API key (ignored on Vertex AI)
            vertexai: Route requests through Vertex AI
            project: Google Cloud project id (Vertex AI only)
            location: Google Cloud region (Vertex AI only)
            temperature: Optional sampling temperature
            safety_settings: Overrides DEFAULT_SAFETY_SETTINGS
            **client_kwargs: Additional kwargs for genai.Client
        """
        if vertexai:
            self._client = genai.Client(
                vertexai=True, project=project, location=location, **client_kwargs
            )
        else:
            self._client = genai.Client(vertexai=False, api_key=api_key, **client_kwargs)
        self._vertexai = vertexai
        self._temperature = temperature
        self._safety_settings = safety_settings or DEFAULT_SAFETY_SETTINGS

    @property
    def vertexai(self) -> bool:
        """True when requests go through Vertex AI."""
        return self._vertexai

    def _generation_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self._temperature,
            safety_settings=self._safety_settings,
        )

    def start_session(self, model_identifier: str) -> ChatSession:
        """Create a new SDK chat; no request is sent."""
        chat = self._client.aio.chats.create(
            model=model_identifier,
            config=self._generation_config(),
        )
        return ChatSession(model=model_identifier, backend=chat)

    async def send_once(
        self,
        session: ChatSession,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> ChatResponse:
        """Send a prompt through the session chat and wait for the reply."""
        raise_if_cancelled(token)
        try:
            response = await session.backend.send_message(prompt)
        except Exception as e:
            translated = translate_error(e)
            if translated is None:
                raise
            raise translated from e
        raise_if_cancelled(token)

        text = extract_text(response)
        session.record_exchange(prompt, text or "")
        return ChatResponse(
            text=text,
            model=session.model,
            finish_reason=_finish_reason(response),
            usage=_usage(response),
        )

    async def send_streaming(
        self,
        session: ChatSession,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[ResponseChunk]:
        """Stream the reply to a prompt chunk by chunk."""
        raise_if_cancelled(token)
        stream = None
        parts: list[str] = []
        try:
            stream = await session.backend.send_message_stream(prompt)
            async for chunk in stream:
                raise_if_cancelled(token)
                text = extract_text(chunk)
                if text:
                    parts.append(text)
                yield ResponseChunk(
                    text=text,
                    finish_reason=_finish_reason(chunk),
                    usage=_usage(chunk),
                )
        except Exception as e:
            translated = translate_error(e)
            if translated is None:
                raise
            raise translated from e
        finally:
            # Stop pulling from the upstream stream when abandoned early
            if stream is not None and hasattr(stream, "aclose"):
                await stream.aclose()

        session.record_exchange(prompt, "".join(parts))
        logger.debug("Stream finished for session %s (%d parts)", session.id, len(parts))

    async def close(self) -> None:
        """Close the Gemini client.

        Note: The Google GenAI client doesn't require explicit closing,
        but we implement this for interface consistency.
        """
        pass
