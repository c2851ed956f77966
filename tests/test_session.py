"""Unit tests for the session client module."""
from types import SimpleNamespace

import httpx
import openai
import pytest
from google.genai import errors as genai_errors
from google.genai import types
from hypothesis import given
from hypothesis import strategies as st

from vertexchat.cancellation import CancellationToken
from vertexchat.errors import BackendError, ChatCancelledError, NetworkFailureError
from vertexchat.session import (
    ChatSession,
    GeminiSessionClient,
    OpenAISessionClient,
    SessionClient,
    create_session_client,
)
from vertexchat.session.providers.gemini import extract_text


def gemini_response(text: str | None = None, finish_reason=None, usage: tuple[int, int] | None = None):
    parts = [types.Part(text=text)] if text is not None else None
    usage_metadata = None
    if usage:
        usage_metadata = types.GenerateContentResponseUsageMetadata(
            prompt_token_count=usage[0],
            candidates_token_count=usage[1],
            total_token_count=sum(usage),
        )
    return types.GenerateContentResponse(
        candidates=[types.Candidate(
            content=types.Content(role="model", parts=parts) if parts else None,
            finish_reason=finish_reason,
        )],
        usage_metadata=usage_metadata,
    )


class FakeAsyncChat:
    """Stands in for google.genai AsyncChat."""

    def __init__(self, response=None, chunks=None, error=None):
        self.response = response
        self.chunks = chunks or []
        self.error = error
        self.sent: list[str] = []
        self.stream_closed = False

    async def send_message(self, message):
        self.sent.append(message)
        if self.error:
            raise self.error
        return self.response

    async def send_message_stream(self, message):
        self.sent.append(message)
        if self.error:
            raise self.error

        async def generator():
            try:
                for chunk in self.chunks:
                    if isinstance(chunk, Exception):
                        raise chunk
                    yield chunk
            finally:
                self.stream_closed = True

        return generator()


class TestSessionClientInterface:
    """Tests for the abstract SessionClient interface."""

    def test_client_is_abstract(self):
        """Test that SessionClient cannot be instantiated directly."""
        with pytest.raises(TypeError):
            SessionClient()  # type: ignore


class TestChatSession:
    """Tests for the session handle."""

    def test_new_session_has_no_turns(self):
        """Test that sessions start empty."""
        session = ChatSession(model="gemini-1.5-flash")
        assert session.turns == []
        assert session.backend is None

    def test_record_exchange(self):
        """Test that an exchange adds a user and a model turn."""
        session = ChatSession(model="gemini-1.5-flash")
        session.record_exchange("Hello", "Hi")

        assert [(t.role, t.text) for t in session.turns] == [("user", "Hello"), ("model", "Hi")]


class TestGeminiSessionClient:
    """Tests for GeminiSessionClient."""

    @pytest.fixture
    def gemini(self):
        return GeminiSessionClient(api_key="fake-key")

    def test_start_session_creates_sdk_chat(self, gemini):
        """Test that start_session creates a chat without network calls."""
        session = gemini.start_session("gemini-1.5-flash")

        assert session.model == "gemini-1.5-flash"
        assert session.backend is not None
        assert session.turns == []
        assert gemini.vertexai is False

    def test_extract_text_joins_parts(self):
        """Test that all text parts are joined."""
        response = types.GenerateContentResponse(
            candidates=[types.Candidate(content=types.Content(
                role="model",
                parts=[types.Part(text="Hi"), types.Part(text=" there")],
            ))]
        )
        assert extract_text(response) == "Hi there"

    def test_extract_text_blocked_response(self):
        """Test that a safety-blocked candidate yields no text."""
        response = gemini_response(finish_reason=types.FinishReason.SAFETY)
        assert extract_text(response) is None

    @pytest.mark.asyncio
    async def test_send_once(self, gemini):
        """Test a one-shot send returns text, finish reason and usage."""
        chat = FakeAsyncChat(response=gemini_response(
            "Hello!", finish_reason=types.FinishReason.STOP, usage=(3, 2)
        ))
        session = ChatSession(model="gemini-1.5-flash", backend=chat)

        response = await gemini.send_once(session, "Hi")

        assert chat.sent == ["Hi"]
        assert response.text == "Hello!"
        assert response.finish_reason == "STOP"
        assert response.usage == {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}
        assert [(t.role, t.text) for t in session.turns] == [("user", "Hi"), ("model", "Hello!")]

    @pytest.mark.asyncio
    async def test_send_once_without_text(self, gemini):
        """Test that a blocked reply comes back without text."""
        chat = FakeAsyncChat(response=gemini_response(finish_reason=types.FinishReason.SAFETY))
        session = ChatSession(model="gemini-1.5-flash", backend=chat)

        response = await gemini.send_once(session, "Hi")

        assert response.text is None
        assert response.finish_reason == "SAFETY"

    @pytest.mark.asyncio
    async def test_send_once_backend_error(self, gemini):
        """Test that API errors become BackendError."""
        error = genai_errors.ServerError(
            503, {"error": {"code": 503, "message": "model overloaded", "status": "UNAVAILABLE"}}
        )
        session = ChatSession(model="gemini-1.5-flash", backend=FakeAsyncChat(error=error))

        with pytest.raises(BackendError) as exc_info:
            await gemini.send_once(session, "Hi")

        assert exc_info.value.status_code == 503
        assert "overloaded" in exc_info.value.message
        assert session.turns == []

    @pytest.mark.asyncio
    async def test_send_once_network_error(self, gemini):
        """Test that transport errors become NetworkFailureError."""
        session = ChatSession(
            model="gemini-1.5-flash",
            backend=FakeAsyncChat(error=httpx.ConnectError("connection refused")),
        )

        with pytest.raises(NetworkFailureError, match="connection refused"):
            await gemini.send_once(session, "Hi")

    @pytest.mark.asyncio
    async def test_send_once_cancelled_token(self, gemini):
        """Test that a cancelled token stops the send before it starts."""
        chat = FakeAsyncChat(response=gemini_response("Hello!"))
        session = ChatSession(model="gemini-1.5-flash", backend=chat)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ChatCancelledError):
            await gemini.send_once(session, "Hi", token)
        assert chat.sent == []

    @pytest.mark.asyncio
    async def test_send_streaming(self, gemini):
        """Test that streamed chunks come through in order."""
        chat = FakeAsyncChat(chunks=[
            gemini_response("Hi"),
            gemini_response(" there", finish_reason=types.FinishReason.STOP, usage=(3, 2)),
        ])
        session = ChatSession(model="gemini-1.5-flash", backend=chat)

        chunks = [chunk async for chunk in gemini.send_streaming(session, "Hello")]

        assert [c.text for c in chunks] == ["Hi", " there"]
        assert chunks[-1].finish_reason == "STOP"
        assert chunks[-1].usage["total_tokens"] == 5
        assert [(t.role, t.text) for t in session.turns] == [("user", "Hello"), ("model", "Hi there")]

    @pytest.mark.asyncio
    async def test_send_streaming_metadata_chunk(self, gemini):
        """Test that chunks without text are passed on with text None."""
        chat = FakeAsyncChat(chunks=[gemini_response(usage=(1, 0)), gemini_response("ok")])
        session = ChatSession(model="gemini-1.5-flash", backend=chat)

        chunks = [chunk async for chunk in gemini.send_streaming(session, "Hello")]

        assert [c.text for c in chunks] == [None, "ok"]

    @pytest.mark.asyncio
    async def test_send_streaming_is_lazy(self, gemini):
        """Test that nothing is sent before iteration starts."""
        chat = FakeAsyncChat(chunks=[gemini_response("Hi")])
        session = ChatSession(model="gemini-1.5-flash", backend=chat)

        stream = gemini.send_streaming(session, "Hello")
        assert chat.sent == []

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_send_streaming_mid_stream_failure(self, gemini):
        """Test that a failure part-way translates and records nothing."""
        error = genai_errors.ServerError(500, {"error": {"code": 500, "message": "internal"}})
        chat = FakeAsyncChat(chunks=[gemini_response("Hi"), error])
        session = ChatSession(model="gemini-1.5-flash", backend=chat)

        received = []
        with pytest.raises(BackendError):
            async for chunk in gemini.send_streaming(session, "Hello"):
                received.append(chunk.text)

        assert received == ["Hi"]
        assert session.turns == []
        assert chat.stream_closed is True

    @pytest.mark.asyncio
    async def test_send_streaming_cancelled_between_chunks(self, gemini):
        """Test that cancelling the token stops consumption of the stream."""
        chat = FakeAsyncChat(chunks=[gemini_response("Hi"), gemini_response(" there")])
        session = ChatSession(model="gemini-1.5-flash", backend=chat)
        token = CancellationToken()

        received = []
        with pytest.raises(ChatCancelledError):
            async for chunk in gemini.send_streaming(session, "Hello", token):
                received.append(chunk.text)
                token.cancel()

        assert received == ["Hi"]
        assert chat.stream_closed is True
        assert session.turns == []


class FakeCompletions:
    """Stands in for AsyncOpenAI().chat.completions."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.result


class FakeOpenAIStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        chunk = self._chunks.pop(0)
        if isinstance(chunk, Exception):
            raise chunk
        return chunk

    async def close(self):
        self.closed = True


def openai_chunk(text: str | None, finish_reason: str | None = None, usage=None):
    delta = SimpleNamespace(content=text)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)],
        usage=usage,
    )


def openai_request() -> httpx.Request:
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestOpenAISessionClient:
    """Tests for OpenAISessionClient."""

    def make_client(self, completions: FakeCompletions, **kwargs) -> OpenAISessionClient:
        client = OpenAISessionClient(api_key="fake-key", **kwargs)

        async def close():
            pass

        client._client = SimpleNamespace(
            chat=SimpleNamespace(completions=completions),
            close=close,
        )
        return client

    @pytest.mark.asyncio
    async def test_send_once_replays_history(self):
        """Test that every request carries the previous turns."""
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Second"), finish_reason="stop")],
            model="gpt-4o-mini",
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=2, total_tokens=12),
        )
        completions = FakeCompletions(result=response)
        client = self.make_client(completions, system_prompt="You are terse.")
        session = client.start_session("gpt-4o-mini")
        session.record_exchange("First", "Ok")

        result = await client.send_once(session, "Again")

        assert completions.calls[0]["messages"] == [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "First"},
            {"role": "assistant", "content": "Ok"},
            {"role": "user", "content": "Again"},
        ]
        assert result.text == "Second"
        assert result.usage == {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12}
        assert len(session.turns) == 4

    @pytest.mark.asyncio
    async def test_send_streaming(self):
        """Test streaming text deltas and recording the turn."""
        stream = FakeOpenAIStream([
            openai_chunk("Hi"),
            openai_chunk(None),
            openai_chunk(" there", finish_reason="stop"),
        ])
        completions = FakeCompletions(result=stream)
        client = self.make_client(completions)
        session = client.start_session("gpt-4o-mini")

        chunks = [chunk async for chunk in client.send_streaming(session, "Hello")]

        assert [c.text for c in chunks] == ["Hi", None, " there"]
        assert completions.calls[0]["stream"] is True
        assert stream.closed is True
        assert [(t.role, t.text) for t in session.turns] == [("user", "Hello"), ("model", "Hi there")]

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test that connection errors become NetworkFailureError."""
        completions = FakeCompletions(error=openai.APIConnectionError(request=openai_request()))
        client = self.make_client(completions)
        session = client.start_session("gpt-4o-mini")

        with pytest.raises(NetworkFailureError):
            await client.send_once(session, "Hello")
        assert session.turns == []

    @pytest.mark.asyncio
    async def test_status_error(self):
        """Test that HTTP errors become BackendError with the status code."""
        request = openai_request()
        error = openai.RateLimitError(
            "rate limited",
            response=httpx.Response(429, request=request),
            body=None,
        )
        client = self.make_client(FakeCompletions(error=error))
        session = client.start_session("gpt-4o-mini")

        with pytest.raises(BackendError) as exc_info:
            await client.send_once(session, "Hello")

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_mid_stream_failure_closes_stream(self):
        """Test that a failure during streaming closes the upstream stream."""
        stream = FakeOpenAIStream([
            openai_chunk("Hi"),
            openai.APIConnectionError(request=openai_request()),
        ])
        client = self.make_client(FakeCompletions(result=stream))
        session = client.start_session("gpt-4o-mini")

        with pytest.raises(NetworkFailureError):
            async for _ in client.send_streaming(session, "Hello"):
                pass

        assert stream.closed is True
        assert session.turns == []


class TestSessionClientFactory:
    """Tests for session client factory function."""

    def test_create_gemini_client(self):
        """Test creating a Gemini client via factory."""
        client = create_session_client("gemini", api_key="fake-key")
        assert isinstance(client, GeminiSessionClient)

    def test_create_openai_client(self):
        """Test creating an OpenAI client via factory."""
        client = create_session_client("openai", api_key="fake-key")
        assert isinstance(client, OpenAISessionClient)

    def test_create_deepseek_client(self):
        """Test that DeepSeek uses the OpenAI-compatible client."""
        client = create_session_client("deepseek", api_key="fake-key")
        assert isinstance(client, OpenAISessionClient)

    def test_create_client_unknown_type(self):
        """Test that unknown provider type raises ValueError."""
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_session_client("unknown", api_key="test-key")

    def test_create_client_missing_api_key(self):
        """Test that missing API key raises TypeError."""
        with pytest.raises(TypeError, match="requires 'api_key'"):
            create_session_client("gemini")

    def test_create_vertex_client_missing_project(self):
        """Test that Vertex AI requires a project."""
        with pytest.raises(TypeError, match="requires 'project'"):
            create_session_client("vertexai")

    @given(st.text(min_size=1))
    def test_factory_with_random_provider_names(self, provider_name: str):
        """Property test: Factory should only accept known providers."""
        if provider_name.lower() in ("gemini", "vertexai", "vertex", "openai", "deepseek"):
            return
        with pytest.raises(ValueError):
            create_session_client(provider_name, api_key="fake")

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_gemini_real_api(self, api_keys):
        """Integration test: stream a reply from the Gemini API."""
        if not api_keys["gemini"]:
            pytest.skip("GEMINI_API_KEY not set")

        async with create_session_client("gemini", api_key=api_keys["gemini"]) as client:
            session = client.start_session("gemini-1.5-flash")
            chunks = [chunk async for chunk in client.send_streaming(session, "Say hello")]

        assert "".join(c.text or "" for c in chunks)
        assert len(session.turns) == 2
