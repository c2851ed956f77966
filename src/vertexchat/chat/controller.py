"""Conversation controller.

Owns the message log and the backend session, runs sends as asyncio tasks,
folds streamed chunks into the pending reply and cancels or replaces
requests that are still in flight.

All public methods must be called from the event loop thread that owns the
controller. Backend I/O runs concurrently in tasks, but every log mutation
happens on that loop, so the log needs no lock. Only one send operation is
live at a time: starting a send, stop() and start_new_chat() all cancel the
live one and remove its placeholder before touching the log again.
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..cancellation import CancellationToken
from ..config import ConfigProvider, build_prompt
from ..errors import ChatCancelledError
from ..session import ChatSession, ResponseChunk, SessionClient
from .log import MessageLog
from .models import ChatMessage, ConversationSnapshot, ConversationState

logger = logging.getLogger(__name__)

Observer = Callable[[ConversationSnapshot], None]


@dataclass
class _SendOperation:
    """Bookkeeping for one in-flight send."""

    session: ChatSession
    prompt: str
    streaming: bool
    placeholder: ChatMessage
    token: CancellationToken = field(default_factory=CancellationToken)
    task: asyncio.Task | None = None

    @property
    def state(self) -> ConversationState:
        return ConversationState.STREAMING if self.streaming else ConversationState.SENDING


class ConversationController:
    """Chat conversation state machine.

    Usage:
        controller = ConversationController(client, config)
        controller.subscribe(render)
        controller.send_message("Hello")
        await controller.wait()
        print(controller.messages[-1].text)
    """

    def __init__(self, client: SessionClient, config: ConfigProvider):
        """Initialize the controller and start a first session.

        Args:
            client: Backend session client
            config: Source of the model name and chat preamble
        """
        self._client = client
        self._config = config
        self._log = MessageLog()
        self._session = client.start_session(config.current_model_identifier())
        self._error: Exception | None = None
        self._operation: _SendOperation | None = None
        self._observers: list[Observer] = []

    # Observable state

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        """Copies of the messages in send order."""
        return self._log.snapshot()

    @property
    def busy(self) -> bool:
        """True while a send is waiting for the backend."""
        return self._operation is not None

    @property
    def state(self) -> ConversationState:
        if self._operation is None:
            return ConversationState.IDLE
        return self._operation.state

    @property
    def error(self) -> Exception | None:
        """Error of the last failed send, if any."""
        return self._error

    @property
    def has_error(self) -> bool:
        return self._error is not None

    @property
    def session(self) -> ChatSession:
        """The current backend session handle."""
        return self._session

    def snapshot(self) -> ConversationSnapshot:
        """Immutable view of messages, busy flag, state and error."""
        return ConversationSnapshot(
            messages=self._log.snapshot(),
            busy=self.busy,
            state=self.state,
            error=self._error,
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register a callback that receives a snapshot on every change.

        Returns:
            Function that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Conversation observer %r failed", observer)

    # Inbound operations

    def send_message(self, text: str, streaming: bool = True) -> asyncio.Task:
        """Send text to the backend, replacing any send still in flight.

        The user's message is added to the log immediately, followed by a
        pending system placeholder. The reply is filled in by a background
        task, which is returned so callers may await it.

        Args:
            text: Text typed by the user; the preamble is added upstream only
            streaming: Stream the reply chunk by chunk instead of waiting

        Returns:
            Task running the send

        Raises:
            RuntimeError: If called without a running event loop
        """
        loop = asyncio.get_running_loop()
        self._error = None
        prompt = build_prompt(self._config.current_preamble(), text)

        self._cancel_operation()
        self._log.append(ChatMessage.user(text))

        placeholder = ChatMessage.pending_reply()
        operation = _SendOperation(
            session=self._session,
            prompt=prompt,
            streaming=streaming,
            placeholder=placeholder,
        )
        self._operation = operation
        self._log.append(placeholder)

        operation.task = loop.create_task(self._run(operation), name=f"chat-send-{placeholder.id}")
        operation.task.add_done_callback(functools.partial(self._finish, operation))
        operation.token.bind(operation.task)
        self._notify()
        return operation.task

    def stop(self) -> None:
        """Cancel the send in flight without reporting an error."""
        self._cancel_operation()
        self._error = None
        self._notify()

    def start_new_chat(self) -> None:
        """Drop the conversation and start over with a fresh session."""
        self._cancel_operation()
        self._error = None
        self._session = self._client.start_session(self._config.current_model_identifier())
        self._log.clear()
        logger.info("Started new chat session %s (%s)", self._session.id, self._session.model)
        self._notify()

    async def wait(self) -> None:
        """Wait until the send in flight, if any, has finished.

        Never raises because of the send's own outcome; check error instead.
        """
        operation = self._operation
        if operation is None or operation.task is None:
            return
        await asyncio.wait({operation.task})

    async def close(self) -> None:
        """Stop any send and close the session client."""
        self.stop()
        await self._client.close()

    async def __aenter__(self) -> "ConversationController":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # Operation lifecycle

    def _cancel_operation(self) -> None:
        """Abandon the live operation and remove its placeholder.

        After this returns the operation's task never touches the log again:
        its token is cancelled and it is no longer the live operation.
        """
        operation = self._operation
        if operation is None:
            return
        self._operation = None
        operation.token.cancel()
        self._discard_placeholder(operation)
        logger.debug("Cancelled in-flight send %s", operation.placeholder.id)

    def _discard_placeholder(self, operation: _SendOperation) -> None:
        if self._log.last is operation.placeholder:
            self._log.remove_last()

    async def _run(self, operation: _SendOperation) -> None:
        try:
            if operation.streaming:
                await self._receive_stream(operation)
            else:
                await self._receive_once(operation)
        except Exception as e:
            if not operation.token.cancelled:
                self._fail(operation, e)

    def _finish(self, operation: _SendOperation, task: asyncio.Task) -> None:
        """Done callback of the send task.

        Runs even when the task is cancelled before its first step.
        """
        if self._operation is not operation:
            # stop(), a newer send or a new chat already cleaned up
            return
        if task.cancelled() and not operation.token.cancelled:
            self._fail(operation, ChatCancelledError())
        self._operation = None
        self._notify()

    async def _receive_stream(self, operation: _SendOperation) -> None:
        token = operation.token
        stream = self._client.send_streaming(operation.session, operation.prompt, token)
        try:
            async for chunk in stream:
                token.raise_if_cancelled()
                self._apply_chunk(chunk)
        finally:
            if hasattr(stream, "aclose"):
                await stream.aclose()

        token.raise_if_cancelled()
        if operation.placeholder.pending:
            # The stream ended without a single chunk
            self._log.update_last(_mark_complete)
            self._notify()

    def _apply_chunk(self, chunk: ResponseChunk) -> None:
        def apply(message: ChatMessage) -> None:
            message.pending = False
            if chunk.text:
                message.text += chunk.text

        self._log.update_last(apply)
        self._notify()

    async def _receive_once(self, operation: _SendOperation) -> None:
        token = operation.token
        response = await self._client.send_once(operation.session, operation.prompt, token)
        token.raise_if_cancelled()

        def apply(message: ChatMessage) -> None:
            message.text = response.text or ""
            message.pending = False

        if response.text is None:
            logger.info("Backend returned no text (finish reason: %s)", response.finish_reason)
        self._log.update_last(apply)
        self._notify()

    def _fail(self, operation: _SendOperation, error: Exception) -> None:
        logger.warning("Chat request failed: %s", error)
        self._error = error
        self._discard_placeholder(operation)


def _mark_complete(message: ChatMessage) -> None:
    message.pending = False
