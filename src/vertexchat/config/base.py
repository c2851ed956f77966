"""Abstract configuration provider.

The conversation controller reads the model name when a session starts and
the chat preamble on every send. Where the values come from (a file, the
environment, a remote config service) is hidden behind this interface.
"""

from abc import ABC, abstractmethod

MODEL_NAME_KEY = "model_name"
CHAT_PREAMBLE_KEY = "chat_preamble"

DEFAULT_MODEL_NAME = "gemini-1.5-flash"
DEFAULT_CHAT_PREAMBLE = ""

DEFAULTS: dict[str, str] = {
    MODEL_NAME_KEY: DEFAULT_MODEL_NAME,
    CHAT_PREAMBLE_KEY: DEFAULT_CHAT_PREAMBLE,
}


class ConfigProvider(ABC):
    """Source of the model identifier and chat preamble."""

    @abstractmethod
    def current_model_identifier(self) -> str:
        """Latest model name, or the default if none was fetched."""

    @abstractmethod
    def current_preamble(self) -> str:
        """Latest chat preamble, or the default if none was fetched."""


class StaticConfigProvider(ConfigProvider):
    """Fixed values, mainly for tests and scripts."""

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        preamble: str = DEFAULT_CHAT_PREAMBLE,
    ):
        self.model_name = model_name
        self.preamble = preamble

    def current_model_identifier(self) -> str:
        return self.model_name

    def current_preamble(self) -> str:
        return self.preamble


def build_prompt(preamble: str, text: str) -> str:
    """Combine the preamble and the user's text into the prompt sent upstream."""
    return f"{preamble}\n{text}" if preamble else text
