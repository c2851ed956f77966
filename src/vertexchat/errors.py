"""Error taxonomy for vertexchat.

Session clients translate provider-specific exceptions into these types so
the conversation controller only ever deals with one error family.
"""


class ChatError(Exception):
    """Base class for all chat errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message or self.__class__.__name__


class NetworkFailureError(ChatError):
    """The backend could not be reached or the connection dropped."""


class BackendError(ChatError):
    """The backend answered with an error.

    Attributes:
        message: Error text reported by the backend
        status_code: HTTP-like status code, when the backend reports one
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.status_code}: {self.message}"
        return self.message


class ChatCancelledError(ChatError):
    """A send was cancelled before it completed."""

    def __init__(self, message: str = "Request was cancelled"):
        super().__init__(message)


class EmptyLogError(ChatError):
    """A last-element operation was attempted on an empty message log."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation}: message log is empty")
        self.operation = operation


class ConfigurationError(ChatError):
    """The process is not configured to reach a backend."""
