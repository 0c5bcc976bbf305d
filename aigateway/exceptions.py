"""Gateway exceptions."""

from typing import Dict, Optional


class LLMError(Exception):
    """Base LLM error."""
    pass


class ProviderError(LLMError):
    """An upstream provider call failed.

    Network failures, non-2xx responses, timeouts and empty or malformed
    bodies all collapse to this error. ``status_code`` is set when the
    upstream returned an HTTP status.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider} API failed: {message}")


class RateLimitError(LLMError):
    """Rate limit error."""
    pass


class EmptyResponseError(LLMError):
    """Upstream returned success without usable content."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Empty response from {provider}")


class FallbackChainError(LLMError):
    """Base error for the fallback chain."""
    pass


class NoProvidersAvailableError(FallbackChainError):
    """The fallback chain has no configured providers."""

    def __init__(self, message: str = "No fallback providers available"):
        super().__init__(message)


class AllProvidersFailedError(FallbackChainError):
    """Every provider in the chain failed."""

    def __init__(
        self,
        errors: Dict[str, Exception],
        message: str = "All fallback providers failed"
    ):
        self.errors = errors
        self.message = message
        details = "; ".join(f"{name}: {err}" for name, err in errors.items())
        super().__init__(f"{message} ({details})" if details else message)


class GatewayFailedError(LLMError):
    """Both the primary pool and the fallback chain are exhausted."""

    def __init__(self, correlation_id: str, cause: Exception):
        self.correlation_id = correlation_id
        self.cause = cause
        super().__init__(f"AI Gateway failed: {cause}")
