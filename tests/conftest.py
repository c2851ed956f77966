"""Pytest configuration and shared fixtures."""
import os

import pytest
from fakes import ScriptedSessionClient

from vertexchat.chat import ConversationController
from vertexchat.config import StaticConfigProvider


@pytest.fixture
def client():
    """Return a scripted session client."""
    return ScriptedSessionClient()


@pytest.fixture
def config():
    """Return a config provider with no preamble."""
    return StaticConfigProvider(model_name="gemini-1.5-flash", preamble="")


@pytest.fixture
def controller(client, config):
    """Return a controller wired to the scripted client."""
    return ConversationController(client, config)


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "gemini": os.getenv("GEMINI_API_KEY"),
        "openai": os.getenv("OPENAI_API_KEY"),
    }
