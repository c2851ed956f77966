"""Refreshable key/value configuration with defaults.

Models the fetch-and-activate pattern of remote config services: a set of
defaults, and an activated value set that replaces them once something has
been fetched. Fetching itself is left to the caller; this module only
activates values from a mapping, a YAML file or the environment.
"""

import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigurationError
from .base import CHAT_PREAMBLE_KEY, DEFAULTS, MODEL_NAME_KEY, ConfigProvider

logger = logging.getLogger(__name__)

ENV_PREFIX = "VERTEXCHAT_"


def read_yaml_values(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping of config values.

    Raises:
        ConfigurationError: If the file cannot be read or parsed, or does not
            contain a mapping
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data


def env_values(keys: Iterable[str], environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect VERTEXCHAT_<KEY> environment variables for the given keys."""
    env = os.environ if environ is None else environ
    values = {}
    for key in keys:
        env_key = ENV_PREFIX + key.upper()
        if env_key in env:
            values[key] = env[env_key]
    return values


class RemoteConfigProvider(ConfigProvider):
    """Configuration provider with defaults and activatable values.

    Values are looked up on every call, so an activation is seen by the next
    send (preamble) or the next new chat (model name).
    """

    def __init__(self, defaults: Mapping[str, str] | None = None):
        self._defaults: dict[str, str] = {**DEFAULTS, **(defaults or {})}
        self._active: dict[str, str] = {}

    @property
    def keys(self) -> tuple[str, ...]:
        """Keys that have a default value."""
        return tuple(self._defaults)

    @property
    def activated(self) -> bool:
        """True once any value has been activated."""
        return bool(self._active)

    def get(self, key: str) -> str:
        """Return the active value for key, falling back to its default.

        Raises:
            KeyError: If key is neither active nor has a default
        """
        value = self._active.get(key)
        if value:
            return value
        return self._defaults[key]

    def activate(self, values: Mapping[str, Any]) -> None:
        """Replace the active value set.

        Keys without a default are ignored. Blank or None values fall back to
        the default.

        Args:
            values: Fetched key/value pairs
        """
        active = {}
        for key, value in values.items():
            if key not in self._defaults:
                logger.debug("Ignoring unknown config key: %s", key)
                continue
            if value is None or not str(value).strip():
                continue
            active[key] = str(value)
        self._active = active
        logger.info("Activated config keys: %s", ", ".join(sorted(active)) or "(none)")

    def load_yaml(self, path: str | Path) -> None:
        """Activate values from a YAML mapping file."""
        self.activate(read_yaml_values(path))

    def load_env(self, environ: Mapping[str, str] | None = None) -> None:
        """Activate VERTEXCHAT_<KEY> environment variables over the active values.

        Unlike activate(), keys missing from the environment keep their
        current active value.
        """
        values = env_values(self._defaults, environ)
        if values:
            self.activate({**self._active, **values})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RemoteConfigProvider":
        """Create a provider activated from the environment."""
        provider = cls()
        provider.load_env(environ)
        return provider

    def current_model_identifier(self) -> str:
        return self.get(MODEL_NAME_KEY)

    def current_preamble(self) -> str:
        return self.get(CHAT_PREAMBLE_KEY)
