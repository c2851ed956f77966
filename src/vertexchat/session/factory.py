from typing import Any

from .base import SessionClient
from .providers import GeminiSessionClient, OpenAISessionClient

DEEPSEEK_BASE_URL = "https://api.deepseek.com"


def create_session_client(provider: str, **config: Any) -> SessionClient:
    """Create a session client instance.

    This factory function hides the instantiation logic for different backends.

    Args:
        provider: Backend type ('gemini', 'vertexai', 'openai', 'deepseek')
        **config: Backend-specific configuration
            For Gemini (Developer API):
                - api_key: str (required)
            For Vertex AI:
                - project: str (required)
                - location: str (default: 'us-central1')
            For OpenAI:
                - api_key: str (required)
                - base_url: str | None
                - organization: str | None
            For DeepSeek:
                - api_key: str (required)
                - base_url: str (default: 'https://api.deepseek.com')

    Returns:
        Initialized session client instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> client = create_session_client(
        ...     "vertexai",
        ...     project="my-project",
        ...     location="us-central1"
        ... )

        >>> client = create_session_client("gemini", api_key="...")
    """
    provider_lower = provider.lower()

    if provider_lower == "gemini":
        if "api_key" not in config:
            raise TypeError("Gemini provider requires 'api_key' in config")
        return GeminiSessionClient(**config)

    if provider_lower in ("vertexai", "vertex"):
        if "project" not in config:
            raise TypeError("Vertex AI provider requires 'project' in config")
        return GeminiSessionClient(vertexai=True, **config)

    if provider_lower == "openai":
        if "api_key" not in config:
            raise TypeError("OpenAI provider requires 'api_key' in config")
        return OpenAISessionClient(**config)

    if provider_lower == "deepseek":
        if "api_key" not in config:
            raise TypeError("DeepSeek provider requires 'api_key' in config")
        config.setdefault("base_url", DEEPSEEK_BASE_URL)
        return OpenAISessionClient(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'gemini', 'vertexai', 'openai', 'deepseek'"
    )
