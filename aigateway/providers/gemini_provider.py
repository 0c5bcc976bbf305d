"""Gemini provider backing the primary credential pool."""

import logging
from typing import Any, Dict

from ..base import LLMResponse
from ..exceptions import ProviderError
from .http_base import HTTPLLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(HTTPLLMProvider):
    """Google Gemini ``generateContent`` client bound to a single API key."""

    name = "Gemini"

    def __init__(self, config: Dict[str, Any]):
        """Initialize Gemini provider.

        Args:
            config: Configuration dictionary with Gemini settings
        """
        super().__init__(config)
        self.model = config.get('model', 'gemini-2.0-flash-exp')
        self.base_url = config.get('base_url', 'https://generativelanguage.googleapis.com/v1beta')

        if not self.api_key:
            raise ValueError("Gemini API key is required")

    async def generate_content(self, prompt: str, **kwargs) -> LLMResponse:
        """Generate content using the Gemini REST API.

        The returned content may be empty; callers decide whether that
        counts as a failure.
        """
        # Key travels in a header so it never appears in a logged URL
        headers = {
            'x-goog-api-key': self.api_key,
            'Content-Type': 'application/json',
        }
        payload = {
            'contents': [{'role': 'user', 'parts': [{'text': prompt}]}],
            'generationConfig': {
                'maxOutputTokens': kwargs.get('max_tokens', self.max_tokens),
                'temperature': kwargs.get('temperature', self.temperature),
            },
        }

        data = await self._post_json(
            f"{self.base_url}/models/{self.model}:generateContent",
            headers,
            payload,
        )

        content = self._extract_text(data)
        response = LLMResponse(content=content, provider=self.name, model=self.model)
        candidate = self._first_candidate(data)
        response.metadata = {
            "finish_reason": candidate.get('finishReason'),
            "usage": data.get('usageMetadata', {}),
        }
        logger.debug(f"Gemini response received: {len(content)} chars")
        return response

    def _extract_text(self, data: Dict[str, Any]) -> str:
        candidates = data.get('candidates')
        if candidates is None:
            # Prompt-level blocks come back as 200 with no candidates
            feedback = data.get('promptFeedback') or {}
            if feedback.get('blockReason'):
                raise ProviderError(self.name, f"Prompt blocked: {feedback['blockReason']}")
            return ""
        if not isinstance(candidates, list):
            raise ProviderError(self.name, "Malformed response body: candidates is not a list")

        content = self._first_candidate(data).get('content') or {}
        if not isinstance(content, dict):
            raise ProviderError(self.name, "Malformed response body: candidate content is not an object")

        parts = content.get('parts') or []
        if not isinstance(parts, list):
            raise ProviderError(self.name, "Malformed response body: content parts is not a list")
        return "".join(part.get('text') or '' for part in parts if isinstance(part, dict))

    def _first_candidate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        candidates = data.get('candidates')
        if not isinstance(candidates, list) or not candidates:
            return {}
        if not isinstance(candidates[0], dict):
            raise ProviderError(self.name, "Malformed response body: candidate is not an object")
        return candidates[0]
