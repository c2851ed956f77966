"""Configuration providers for the conversation controller."""

from .base import (
    CHAT_PREAMBLE_KEY,
    DEFAULT_CHAT_PREAMBLE,
    DEFAULT_MODEL_NAME,
    MODEL_NAME_KEY,
    ConfigProvider,
    StaticConfigProvider,
    build_prompt,
)
from .remote import RemoteConfigProvider, env_values, read_yaml_values

__all__ = [
    "env_values",
    "read_yaml_values",
    "CHAT_PREAMBLE_KEY",
    "DEFAULT_CHAT_PREAMBLE",
    "DEFAULT_MODEL_NAME",
    "MODEL_NAME_KEY",
    "ConfigProvider",
    "RemoteConfigProvider",
    "StaticConfigProvider",
    "build_prompt",
]
