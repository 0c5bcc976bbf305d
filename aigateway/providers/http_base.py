"""Shared aiohttp plumbing for HTTP-backed providers."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..base import BaseLLMProvider
from ..exceptions import ProviderError

logger = logging.getLogger(__name__)


class HTTPLLMProvider(BaseLLMProvider):
    """Provider that talks JSON over HTTPS with a pooled aiohttp session."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session with connection pooling."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def cleanup(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON body.

        Raises:
            ProviderError: On timeout, transport error, non-2xx status or
                a body that is not a JSON object.
        """
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with session.post(url, headers=headers, json=payload, timeout=timeout) as response:
                if response.status >= 400:
                    message = await self._read_error_message(response)
                    raise ProviderError(self.name, message, status_code=response.status)

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderError(self.name, f"Malformed response body: {e}") from e

        except asyncio.TimeoutError as e:
            raise ProviderError(self.name, f"Request timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise ProviderError(self.name, f"Connection error: {e}") from e

        if not isinstance(data, dict):
            raise ProviderError(self.name, "Malformed response body: expected a JSON object")
        return data

    @staticmethod
    async def _read_error_message(response: aiohttp.ClientResponse) -> str:
        """Pull ``error.message`` out of an error body, else the raw text."""
        text = await response.text()
        try:
            body = await response.json(content_type=None)
        except ValueError:
            body = None

        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return f"{response.status} {error['message']}"
        return f"{response.status} {text[:200]}".strip()
