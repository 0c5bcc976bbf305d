"""Base LLM provider interface for the AI gateway."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def mask_secret(secret: Optional[str], visible: int = 8) -> str:
    """Return a log-safe label for an API key."""
    if not secret:
        return "<unset>"
    return secret[:visible] + "..."


class LLMResponse:
    """Response from LLM provider with metadata."""

    def __init__(self, content: str, provider: str = "unknown", model: str = "unknown"):
        self.content = content
        self.provider = provider
        self.model = model
        self.timestamp = datetime.now(timezone.utc)
        self.metadata: Dict[str, Any] = {}

    def __str__(self) -> str:
        return f"LLMResponse(provider={self.provider}, model={self.model}, length={len(self.content or '')})"


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name = "base"

    def __init__(self, config: Dict[str, Any]):
        """Initialize the provider with configuration."""
        self.config = config
        self.api_key = config.get('api_key')
        self.model = config.get('model', 'default-model')
        self.base_url = config.get('base_url')
        self.timeout_seconds = config.get('timeout_seconds', 30)
        self.max_tokens = config.get('max_tokens', 1000)
        self.temperature = config.get('temperature', 0.7)

    @abstractmethod
    async def generate_content(self, prompt: str, **kwargs) -> LLMResponse:
        """Generate content from prompt.

        Args:
            prompt: The input prompt
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with generated content

        Raises:
            ProviderError: On any upstream failure
        """
        pass

    def is_available(self) -> bool:
        """Check if provider is properly configured and available."""
        return bool(self.api_key)

    @property
    def key_label(self) -> str:
        return mask_secret(self.api_key)

    async def cleanup(self) -> None:
        """Release network resources held by the provider."""
        return None
