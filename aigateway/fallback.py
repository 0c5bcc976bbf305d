"""Fallback provider chain.

Secondary providers are tried once each, in fixed priority order, after the
primary credential pool is exhausted. There is no retry within a provider;
resilience comes from the number of providers, not from repeated attempts.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .base import BaseLLMProvider
from .exceptions import AllProvidersFailedError, NoProvidersAvailableError, ProviderError
from .metrics import FALLBACK_ATTEMPTS

logger = logging.getLogger(__name__)


@dataclass
class FallbackResult:
    """Successful fallback generation."""
    text: str
    provider_name: str


class ProviderFallbackChain:
    """Ordered chain of secondary providers.

    Example:
        chain = ProviderFallbackChain([GroqProvider(...), OpenAIProvider(...)])
        result = await chain.generate_fallback("Summarize CVE-2024-3094")
        print(result.provider_name, result.text)
    """

    def __init__(
        self,
        providers: Sequence[BaseLLMProvider] = (),
        request_timeout: Optional[float] = 30.0,
    ):
        """Initialize the chain.

        Providers without a configured secret are dropped here and never
        retried at call time.

        Args:
            providers: Candidate providers in priority order
            request_timeout: Ceiling for a single provider call (seconds)
        """
        self._request_timeout = request_timeout
        self._providers: List[BaseLLMProvider] = []
        self._fallback_count = 0
        self._lock = threading.Lock()

        for provider in providers:
            if provider.is_available():
                self._providers.append(provider)
                logger.info(f"{provider.name} fallback provider initialized")
            else:
                logger.info(f"{provider.name} fallback provider skipped (no API key)")

        if not self._providers:
            logger.warning("No fallback providers available")
        else:
            logger.info(f"{len(self._providers)} fallback provider(s) available")

    @property
    def providers(self) -> List[BaseLLMProvider]:
        return list(self._providers)

    def get_provider_names(self) -> List[str]:
        """Get names of available providers, in priority order."""
        return [p.name for p in self._providers]

    def has_available_providers(self) -> bool:
        return bool(self._providers)

    async def _try_provider(self, provider: BaseLLMProvider, prompt: str) -> str:
        """Run one provider call, mapping every failure to ProviderError."""
        start_time = time.monotonic()
        try:
            response = await asyncio.wait_for(
                provider.generate_content(prompt),
                timeout=self._request_timeout
            )
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(
                provider.name, f"Request timed out after {self._request_timeout}s"
            ) from e
        except Exception as e:
            raise ProviderError(provider.name, str(e)) from e

        text = (response.content or "").strip() if response is not None else ""
        if not text:
            raise ProviderError(provider.name, f"No response content from {provider.name}")

        latency_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"Provider '{provider.name}' succeeded in {latency_ms:.1f}ms")
        return text

    async def generate_fallback(self, prompt: str) -> FallbackResult:
        """Generate a response using the first provider that succeeds.

        Raises:
            NoProvidersAvailableError: If the chain is empty
            AllProvidersFailedError: If every provider failed
        """
        if not self._providers:
            raise NoProvidersAvailableError()

        errors: Dict[str, Exception] = {}

        for provider in self._providers:
            logger.info(f"Attempting fallback with {provider.name}")
            try:
                text = await self._try_provider(provider, prompt)
            except ProviderError as e:
                errors[provider.name] = e
                FALLBACK_ATTEMPTS.labels(provider=provider.name, result="failure").inc()
                logger.warning(f"{provider.name} fallback failed: {e}")
                continue

            FALLBACK_ATTEMPTS.labels(provider=provider.name, result="success").inc()
            with self._lock:
                self._fallback_count += 1
                total = self._fallback_count
            logger.info(f"Fallback successful with {provider.name} (total fallbacks: {total})")
            return FallbackResult(text=text, provider_name=provider.name)

        raise AllProvidersFailedError(errors=errors)

    def stats(self) -> Dict[str, Any]:
        """Get fallback statistics."""
        with self._lock:
            return {
                "available_providers": self.get_provider_names(),
                "total_fallbacks": self._fallback_count,
            }

    def reset_stats(self) -> None:
        with self._lock:
            self._fallback_count = 0
        logger.info("Fallback statistics reset")

    async def cleanup(self) -> None:
        for provider in self._providers:
            await provider.cleanup()
