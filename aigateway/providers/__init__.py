"""Upstream LLM providers for the AI gateway."""

from .gemini_provider import GeminiProvider
from .http_base import HTTPLLMProvider
from .openai_compatible import GroqProvider, OpenAICompatibleProvider, OpenAIProvider

__all__ = [
    "GeminiProvider",
    "GroqProvider",
    "HTTPLLMProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
]
