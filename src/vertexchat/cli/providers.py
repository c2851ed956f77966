"""Provider factory functions for CLI.

Centralizes creation of the session client and config provider from
environment variables. Hides configuration details from command
implementations.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from rich.console import Console

from ..config import RemoteConfigProvider
from ..errors import ConfigurationError
from ..session import SessionClient, create_session_client

# Project id shipped in sample credentials; a real project is required
PLACEHOLDER_PROJECT_ID = "mockproject-1234"

DEFAULT_LOCATION = "us-central1"

_TRUE_VALUES = ("1", "true", "yes", "on")

# Default console for output
_console = Console()


def build_session_client(environ: Mapping[str, str] | None = None) -> SessionClient:
    """Create a session client from environment variables.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Session client for the configured backend

    Raises:
        ConfigurationError: If the backend is unknown or credentials are missing

    Environment variables:
        LLM_PROVIDER: Backend (gemini, vertexai, openai, deepseek; default: gemini)
        GOOGLE_GENAI_USE_VERTEXAI: Route gemini through Vertex AI when true
        GOOGLE_CLOUD_PROJECT: Google Cloud project (Vertex AI)
        GOOGLE_CLOUD_LOCATION: Google Cloud region (default: us-central1)
        GEMINI_API_KEY / GOOGLE_API_KEY: Gemini Developer API key
        OPENAI_API_KEY: OpenAI API key
        OPENAI_BASE_URL: Optional OpenAI-compatible endpoint
        DEEPSEEK_API_KEY: DeepSeek API key
    """
    env = os.environ if environ is None else environ
    provider = env.get("LLM_PROVIDER", "gemini").lower()

    if provider == "gemini" and env.get("GOOGLE_GENAI_USE_VERTEXAI", "").lower() in _TRUE_VALUES:
        provider = "vertexai"

    if provider in ("vertexai", "vertex"):
        project = env.get("GOOGLE_CLOUD_PROJECT")
        if not project:
            raise ConfigurationError("GOOGLE_CLOUD_PROJECT not set in environment")
        if project == PLACEHOLDER_PROJECT_ID:
            raise ConfigurationError(
                f"GOOGLE_CLOUD_PROJECT is the placeholder '{PLACEHOLDER_PROJECT_ID}'. "
                "Create a Google Cloud project with Vertex AI enabled and set its id."
            )
        return create_session_client(
            "vertexai",
            project=project,
            location=env.get("GOOGLE_CLOUD_LOCATION", DEFAULT_LOCATION),
        )

    if provider == "gemini":
        api_key = env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY")
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY not set in environment")
        return create_session_client("gemini", api_key=api_key)

    if provider == "openai":
        api_key = env.get("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not set in environment")
        return create_session_client(
            "openai", api_key=api_key, base_url=env.get("OPENAI_BASE_URL")
        )

    if provider == "deepseek":
        api_key = env.get("DEEPSEEK_API_KEY")
        if not api_key:
            raise ConfigurationError("DEEPSEEK_API_KEY not set in environment")
        return create_session_client("deepseek", api_key=api_key)

    raise ConfigurationError(f"Unknown LLM provider: {provider}")


def require_client(console: Console | None = None) -> SessionClient:
    """Get the session client, exiting with an error if not configured.

    Args:
        console: Optional Rich console for output

    Raises:
        SystemExit: If the backend is not configured
    """
    import typer

    con = console or _console
    try:
        return build_session_client()
    except ConfigurationError as e:
        con.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def get_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> RemoteConfigProvider:
    """Create the config provider.

    Values from the YAML file (``config_path`` or ``VERTEXCHAT_CONFIG``) are
    activated first; ``VERTEXCHAT_MODEL_NAME`` and
    ``VERTEXCHAT_CHAT_PREAMBLE`` override them.
    """
    env = os.environ if environ is None else environ
    provider = RemoteConfigProvider()

    path = config_path or env.get("VERTEXCHAT_CONFIG")
    if path:
        provider.load_yaml(path)
    provider.load_env(env)
    return provider
