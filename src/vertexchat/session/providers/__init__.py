from .gemini import GeminiSessionClient
from .openai import OpenAISessionClient

__all__ = ["GeminiSessionClient", "OpenAISessionClient"]
