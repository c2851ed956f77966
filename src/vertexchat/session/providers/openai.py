"""OpenAI-compatible session client implementation.

Chat Completions is stateless, so the session handle carries the turn history
and every request replays it. Works with any endpoint that speaks the OpenAI
protocol (OpenAI itself, DeepSeek, local gateways) through ``base_url``.
"""

from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from ...cancellation import CancellationToken, raise_if_cancelled
from ...errors import BackendError, ChatError, NetworkFailureError
from ..base import SessionClient
from ..models import ChatResponse, ChatSession, ResponseChunk

# Session turns use Gemini's role names; map them to Chat Completions roles
_ROLE_MAP = {"user": "user", "model": "assistant"}


def translate_error(error: Exception) -> ChatError | None:
    """Map an OpenAI SDK exception to a vertexchat error.

    Returns None for exceptions that should propagate unchanged.
    """
    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(error, openai.APIConnectionError):
        return NetworkFailureError(str(error))
    if isinstance(error, openai.APIStatusError):
        return BackendError(error.message, status_code=error.status_code)
    if isinstance(error, openai.APIError):
        return BackendError(error.message)
    return None


def _usage(usage: Any) -> dict[str, int] | None:
    if usage is None:
        return None
    return {
        "prompt_tokens": usage.prompt_tokens,
        "completion_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens,
    }


class OpenAISessionClient(SessionClient):
    """OpenAI Chat Completions session client.

    Hidden design decisions:
    - OpenAI API client initialization
    - History replay (the API keeps no server-side conversation)
    - Error translation to the vertexchat taxonomy
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        organization: str | None = None,
        temperature: float = 0.7,
        system_prompt: str | None = None,
        **client_kwargs: Any
    ):
        """Initialize OpenAI session client.

        Args:
            api_key: API key
            base_url: Optional custom API base URL
            organization: Optional organization ID
            temperature: Sampling temperature
            system_prompt: Optional system message sent before the history
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._temperature = temperature
        self._system_prompt = system_prompt
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            **client_kwargs
        )

    def start_session(self, model_identifier: str) -> ChatSession:
        """Create an empty session; history lives on the handle."""
        return ChatSession(model=model_identifier)

    def _build_messages(self, session: ChatSession, prompt: str) -> list[dict[str, str]]:
        messages = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        for turn in session.turns:
            messages.append({"role": _ROLE_MAP.get(turn.role, "user"), "content": turn.text})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def send_once(
        self,
        session: ChatSession,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> ChatResponse:
        """Send the history plus prompt and wait for the reply."""
        raise_if_cancelled(token)
        try:
            response = await self._client.chat.completions.create(
                model=session.model,
                messages=self._build_messages(session, prompt),
                temperature=self._temperature,
            )
        except Exception as e:
            translated = translate_error(e)
            if translated is None:
                raise
            raise translated from e
        raise_if_cancelled(token)

        text = None
        finish_reason = None
        if response.choices:
            text = response.choices[0].message.content or None
            finish_reason = response.choices[0].finish_reason
        session.record_exchange(prompt, text or "")
        return ChatResponse(
            text=text,
            model=response.model or session.model,
            finish_reason=finish_reason,
            usage=_usage(response.usage),
        )

    async def send_streaming(
        self,
        session: ChatSession,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[ResponseChunk]:
        """Stream the reply to the history plus prompt."""
        raise_if_cancelled(token)
        stream = None
        parts: list[str] = []
        try:
            stream = await self._client.chat.completions.create(
                model=session.model,
                messages=self._build_messages(session, prompt),
                temperature=self._temperature,
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                raise_if_cancelled(token)
                text = None
                finish_reason = None
                if chunk.choices:
                    text = chunk.choices[0].delta.content or None
                    finish_reason = chunk.choices[0].finish_reason
                if text:
                    parts.append(text)
                yield ResponseChunk(
                    text=text,
                    finish_reason=finish_reason,
                    usage=_usage(chunk.usage),
                )
        except Exception as e:
            translated = translate_error(e)
            if translated is None:
                raise
            raise translated from e
        finally:
            if stream is not None:
                await stream.close()

        session.record_exchange(prompt, "".join(parts))

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
