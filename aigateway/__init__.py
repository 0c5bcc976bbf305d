"""AI request gateway.

Routes text-generation requests to a pool of primary-provider credentials
with cooldown tracking, falls back to an ordered chain of secondary
providers, and reports statistics and health for operators.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from aigateway.config import GatewaySettings, configure_logging, load_settings
from aigateway.credential_pool import Credential, CredentialPool
from aigateway.exceptions import (
    AllProvidersFailedError,
    EmptyResponseError,
    GatewayFailedError,
    LLMError,
    NoProvidersAvailableError,
    ProviderError,
    RateLimitError,
)
from aigateway.fallback import FallbackResult, ProviderFallbackChain
from aigateway.gateway import AIGateway, GatewayResult, HealthStatus, create_gateway, is_rate_limit_error

__all__ = [
    "__version__",
    "__license__",
    "AIGateway",
    "AllProvidersFailedError",
    "Credential",
    "CredentialPool",
    "EmptyResponseError",
    "FallbackResult",
    "GatewayFailedError",
    "GatewayResult",
    "GatewaySettings",
    "HealthStatus",
    "LLMError",
    "NoProvidersAvailableError",
    "ProviderError",
    "ProviderFallbackChain",
    "RateLimitError",
    "configure_logging",
    "create_gateway",
    "is_rate_limit_error",
    "load_settings",
]
