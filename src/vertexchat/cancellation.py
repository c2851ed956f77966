"""Cancellation tokens for in-flight send operations."""

from __future__ import annotations

import asyncio

from .errors import ChatCancelledError

__all__ = ["CancellationToken", "raise_if_cancelled"]


class CancellationToken:
    """Cooperative cancellation flag for one send operation.

    A token can be bound to the asyncio task running the operation; cancelling
    the token then also cancels the task so that any awaited backend call is
    interrupted immediately instead of at the next checkpoint.
    """

    __slots__ = ("_cancelled", "_task")

    def __init__(self) -> None:
        self._cancelled = False
        self._task: asyncio.Task | None = None

    @property
    def cancelled(self) -> bool:
        """Return ``True`` when cancellation has been requested."""

        return self._cancelled

    def bind(self, task: asyncio.Task) -> None:
        """Attach the task that runs the operation guarded by this token."""

        self._task = task
        if self._cancelled:
            task.cancel()

    def cancel(self) -> None:
        """Signal cancellation and interrupt the bound task, if any."""

        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`ChatCancelledError` if cancellation occurred."""

        if self._cancelled:
            raise ChatCancelledError()


def raise_if_cancelled(token: CancellationToken | None) -> None:
    """Convenience helper raising when *token* has been signalled."""

    if token is not None:
        token.raise_if_cancelled()
