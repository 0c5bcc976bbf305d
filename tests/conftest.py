"""Global test fixtures for the AI gateway test suite."""

import asyncio
from typing import Any, List, Optional, Sequence, Union

import pytest

from aigateway.base import BaseLLMProvider, LLMResponse
from aigateway.config import GatewaySettings
from aigateway.credential_pool import CredentialPool
from aigateway.fallback import ProviderFallbackChain
from aigateway.gateway import AIGateway


# ==========================================
# Pytest Configuration
# ==========================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


# ==========================================
# Mock LLM Provider
# ==========================================

Outcome = Union[str, BaseException]


class MockProvider(BaseLLMProvider):
    """Scriptable provider for testing.

    ``outcomes`` are consumed one per call: a string is returned as content,
    an exception is raised. Once exhausted, ``response_content`` is returned.
    """

    def __init__(
        self,
        name: str = "mock",
        api_key: Optional[str] = "test-key-123456",
        outcomes: Sequence[Outcome] = (),
        response_content: str = "Mock response",
        latency_ms: float = 0.0,
        always_fail: Optional[BaseException] = None,
    ):
        super().__init__({"api_key": api_key, "model": "test-model"})
        self.name = name
        self.outcomes: List[Outcome] = list(outcomes)
        self.response_content = response_content
        self.latency_ms = latency_ms
        self.always_fail = always_fail
        self.call_count = 0
        self.prompts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cleaned_up = False

    async def generate_content(self, prompt: str, **kwargs: Any) -> LLMResponse:
        self.call_count += 1
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency_ms:
                await asyncio.sleep(self.latency_ms / 1000)

            if self.always_fail is not None:
                raise self.always_fail

            outcome = self.outcomes.pop(0) if self.outcomes else self.response_content
            if isinstance(outcome, BaseException):
                raise outcome
            return LLMResponse(content=outcome, provider=self.name, model="test-model")
        finally:
            self.in_flight -= 1

    async def cleanup(self) -> None:
        self.cleaned_up = True


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ==========================================
# Fixtures
# ==========================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Gateway settings with zero backoff and a short timeout."""
    return GatewaySettings(
        max_concurrency=2,
        cooldown_seconds=60.0,
        max_error_count=5,
        max_primary_attempts=3,
        request_timeout=2.0,
        no_credential_backoff_seconds=0.0,
        error_backoff_seconds=0.0,
    )


@pytest.fixture
def make_gateway(settings, clock):
    """Build a gateway from primary clients and fallback providers."""

    def _make(
        primary: Sequence[BaseLLMProvider] = (),
        fallbacks: Sequence[BaseLLMProvider] = (),
        **overrides: Any,
    ) -> AIGateway:
        gateway_settings = settings.model_copy(update=overrides) if overrides else settings
        pool = CredentialPool(
            primary,
            cooldown_seconds=gateway_settings.cooldown_seconds,
            max_error_count=gateway_settings.max_error_count,
            clock=clock,
        )
        chain = ProviderFallbackChain(fallbacks, request_timeout=gateway_settings.request_timeout)
        return AIGateway(pool, chain, gateway_settings)

    return _make


@pytest.fixture
def make_provider():
    """Factory for ``MockProvider`` instances."""
    return MockProvider
