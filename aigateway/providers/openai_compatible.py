"""OpenAI-compatible chat completion providers used as fallbacks."""

import logging
from typing import Any, Dict

from ..base import LLMResponse
from ..exceptions import ProviderError
from .http_base import HTTPLLMProvider

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(HTTPLLMProvider):
    """Chat completions client for any OpenAI-shaped API."""

    name = "openai-compatible"
    default_model = "gpt-3.5-turbo"
    default_base_url = "https://api.openai.com/v1"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.model = config.get('model') or self.default_model
        self.base_url = config.get('base_url') or self.default_base_url

    async def generate_content(self, prompt: str, **kwargs) -> LLMResponse:
        """Generate content using the chat completions endpoint.

        Raises:
            ProviderError: If the key is missing, the call fails, or the
                response has no content.
        """
        if not self.is_available():
            raise ProviderError(self.name, "API key not configured")

        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        payload = {
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'max_tokens': kwargs.get('max_tokens', self.max_tokens),
            'temperature': kwargs.get('temperature', self.temperature),
        }

        data = await self._post_json(f"{self.base_url}/chat/completions", headers, payload)

        try:
            content = data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError):
            content = None

        if not content or not content.strip():
            raise ProviderError(self.name, f"No response content from {self.name}")

        response = LLMResponse(content=content.strip(), provider=self.name, model=self.model)
        response.metadata = {"usage": data.get('usage', {})}
        logger.debug(f"{self.name} response received: {len(response.content)} chars")
        return response


class GroqProvider(OpenAICompatibleProvider):
    """Groq (Llama models)."""

    name = "Groq"
    default_model = "llama3-8b-8192"
    default_base_url = "https://api.groq.com/openai/v1"


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI."""

    name = "OpenAI"
