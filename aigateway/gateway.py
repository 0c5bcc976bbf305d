"""AI request gateway.

Entry point for every AI call in the platform. A request first runs a
bounded retry loop against the primary credential pool under a concurrency
limiter; if that loop yields nothing, the request is handed to the fallback
provider chain. Callers see either a ``GatewayResult`` or a single
``GatewayFailedError``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from .config import GatewaySettings, load_settings
from .credential_pool import Credential, CredentialPool
from .exceptions import EmptyResponseError, GatewayFailedError, ProviderError, RateLimitError
from .fallback import ProviderFallbackChain
from .metrics import GATEWAY_REQUESTS, RATE_LIMIT_EVENTS, REQUEST_LATENCY
from .providers import GeminiProvider, GroqProvider, OpenAIProvider

logger = logging.getLogger(__name__)

PRIMARY_PROVIDER_NAME = "Gemini"

RATE_LIMIT_MARKERS = ("rate limit", "quota exceeded", "too many requests", "429")
_STATUS_ATTRIBUTES = ("status_code", "status", "code")


class HealthStatus(str, Enum):
    """Gateway health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class GatewayResult:
    """Successful gateway response."""
    text: str
    provider_name: str
    used_fallback: bool
    correlation_id: str
    elapsed_ms: int
    credential_label: Optional[str] = None


@dataclass
class GatewayStats:
    """Process-wide counters, reset only through ``reset_stats``."""
    total_requests: int = 0
    primary_successes: int = 0
    fallback_successes: int = 0
    rate_limit_events: int = 0
    total_latency_ms: float = field(default=0.0)


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an upstream error as rate limiting.

    Structured status attributes are checked first; message matching is the
    fallback for clients that only expose text.
    """
    if isinstance(error, RateLimitError):
        return True

    for attribute in _STATUS_ATTRIBUTES:
        value = getattr(error, attribute, None)
        if value is None or isinstance(value, bool):
            continue
        if value == 429 or str(value) == "429":
            return True

    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class AIGateway:
    """Primary pool plus fallback chain behind one ``generate`` call.

    Example:
        async with create_gateway() as gateway:
            result = await gateway.generate("Explain CVE-2021-44228")
            print(result.provider_name, result.text)
    """

    def __init__(
        self,
        pool: CredentialPool,
        fallback_chain: ProviderFallbackChain,
        settings: Optional[GatewaySettings] = None,
    ):
        """Initialize the gateway.

        Args:
            pool: Primary-provider credential pool
            fallback_chain: Secondary providers tried after the pool
            settings: Concurrency, retry and timeout settings
        """
        self._settings = settings or GatewaySettings()
        self._pool = pool
        self._fallback = fallback_chain
        # Bounds primary-provider calls only; fallback runs outside it
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrency)
        self._stats = GatewayStats()
        self._stats_lock = threading.Lock()

        logger.info(
            f"Initialized AIGateway with {len(pool)} primary keys, "
            f"fallbacks={fallback_chain.get_provider_names()}, "
            f"max_concurrency={self._settings.max_concurrency}"
        )

    @property
    def pool(self) -> CredentialPool:
        return self._pool

    @property
    def fallback_chain(self) -> ProviderFallbackChain:
        return self._fallback

    # ========================================================================
    # Generation
    # ========================================================================

    async def generate(self, prompt: str) -> GatewayResult:
        """Generate a response with key rotation and provider fallback.

        Args:
            prompt: The prompt to send

        Returns:
            GatewayResult from the primary provider or a fallback

        Raises:
            GatewayFailedError: If the primary pool and the fallback chain
                are both exhausted
        """
        correlation_id = self._new_correlation_id()
        start_time = time.monotonic()

        with self._stats_lock:
            self._stats.total_requests += 1

        logger.info(f"AI Gateway request {correlation_id} started")

        try:
            primary = None
            if len(self._pool):
                async with self._semaphore:
                    primary = await self._try_primary(prompt, correlation_id)

            if primary is not None:
                text, credential = primary
                elapsed_ms = self._finish(start_time, "primary")
                logger.info(
                    f"AI Gateway request {correlation_id} completed with "
                    f"{PRIMARY_PROVIDER_NAME} ({elapsed_ms}ms)"
                )
                return GatewayResult(
                    text=text,
                    provider_name=PRIMARY_PROVIDER_NAME,
                    used_fallback=False,
                    correlation_id=correlation_id,
                    elapsed_ms=elapsed_ms,
                    credential_label=credential.label,
                )

            logger.info(f"AI Gateway request {correlation_id} falling back to secondary providers")
            fallback = await self._fallback.generate_fallback(prompt)

        except Exception as e:
            elapsed_ms = self._finish(start_time, "failed")
            logger.error(f"AI Gateway request {correlation_id} failed after {elapsed_ms}ms: {e}")
            raise GatewayFailedError(correlation_id, e) from e

        elapsed_ms = self._finish(start_time, "fallback")
        logger.info(
            f"AI Gateway request {correlation_id} completed with "
            f"{fallback.provider_name} ({elapsed_ms}ms)"
        )
        return GatewayResult(
            text=fallback.text,
            provider_name=fallback.provider_name,
            used_fallback=True,
            correlation_id=correlation_id,
            elapsed_ms=elapsed_ms,
        )

    async def generate_text(self, prompt: str) -> str:
        """Return only the generated text."""
        result = await self.generate(prompt)
        return result.text

    async def _try_primary(
        self,
        prompt: str,
        correlation_id: str
    ) -> Optional[Tuple[str, Credential]]:
        """Run the primary attempt loop. Returns None when exhausted."""
        max_attempts = self._settings.max_primary_attempts

        for attempt in range(1, max_attempts + 1):
            credential = self._pool.select_credential()
            if credential is None:
                logger.warning(
                    f"No available Gemini keys for request {correlation_id} (attempt {attempt})"
                )
                if attempt == max_attempts:
                    logger.error(f"All Gemini keys exhausted for request {correlation_id}")
                    return None
                await asyncio.sleep(self._settings.no_credential_backoff_seconds * attempt)
                continue

            logger.debug(
                f"Request {correlation_id} using Gemini key {credential.label} (attempt {attempt})"
            )
            try:
                text = await self._call_primary(credential, prompt)
            except Exception as e:
                logger.warning(
                    f"Request {correlation_id} failed with Gemini key {credential.label}: {e}"
                )

                if is_rate_limit_error(e):
                    self._pool.mark_rate_limited(credential)
                    with self._stats_lock:
                        self._stats.rate_limit_events += 1
                    RATE_LIMIT_EVENTS.inc()
                    # The key is cooling down now; the next selection moves on
                    continue

                self._pool.mark_error(credential)
                if attempt < max_attempts:
                    await asyncio.sleep(self._settings.error_backoff_seconds * attempt)
                continue

            self._pool.mark_success(credential)
            logger.debug(f"Request {correlation_id} successful with Gemini key {credential.label}")
            return text, credential

        logger.error(f"All Gemini attempts failed for request {correlation_id}")
        return None

    async def _call_primary(self, credential: Credential, prompt: str) -> str:
        try:
            response = await asyncio.wait_for(
                credential.client.generate_content(prompt),
                timeout=self._settings.request_timeout
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                PRIMARY_PROVIDER_NAME,
                f"Request timed out after {self._settings.request_timeout}s"
            ) from e

        text = (response.content or "").strip() if response is not None else ""
        if not text:
            raise EmptyResponseError(PRIMARY_PROVIDER_NAME)
        return text

    def _finish(self, start_time: float, outcome: str) -> int:
        """Record latency and the outcome counter for a finished request."""
        elapsed = time.monotonic() - start_time
        elapsed_ms = int(round(elapsed * 1000))

        with self._stats_lock:
            self._stats.total_latency_ms += elapsed_ms
            if outcome == "primary":
                self._stats.primary_successes += 1
            elif outcome == "fallback":
                self._stats.fallback_successes += 1

        GATEWAY_REQUESTS.labels(outcome=outcome).inc()
        REQUEST_LATENCY.labels(outcome=outcome).observe(elapsed)
        return elapsed_ms

    @staticmethod
    def _new_correlation_id() -> str:
        return f"req_{int(time.time() * 1000)}_{uuid4().hex[:6]}"

    # ========================================================================
    # Stats & Health
    # ========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Get comprehensive gateway statistics."""
        with self._stats_lock:
            stats = GatewayStats(**vars(self._stats))

        average = (
            round(stats.total_latency_ms / stats.total_requests)
            if stats.total_requests > 0 else 0
        )

        return {
            "total_requests": stats.total_requests,
            "primary_successes": stats.primary_successes,
            "fallback_successes": stats.fallback_successes,
            "rate_limit_events": stats.rate_limit_events,
            "average_latency_ms": average,
            "pool_status": self._pool.status(),
            "fallback_stats": self._fallback.stats(),
        }

    def health_check(self) -> Dict[str, Any]:
        """Evaluate gateway health from current pool and chain state."""
        pool_status = self._pool.status()
        fallback_stats = self._fallback.stats()

        primary_available = pool_status["eligible"] > 0
        fallback_available = len(fallback_stats["available_providers"]) > 0

        if primary_available:
            status = HealthStatus.HEALTHY
        elif fallback_available:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.UNHEALTHY

        return {
            "status": status.value,
            "primary_available": primary_available,
            "fallback_available": fallback_available,
            "details": {
                "pool": pool_status,
                "fallback": fallback_stats,
                "stats": self.get_stats(),
            },
        }

    def reset_stats(self) -> None:
        """Zero gateway counters, reset every key and the fallback count."""
        with self._stats_lock:
            self._stats = GatewayStats()

        self._pool.reset_all()
        self._fallback.reset_stats()
        logger.info("AI Gateway statistics reset")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def aclose(self) -> None:
        """Close provider HTTP sessions."""
        for credential in self._pool.credentials:
            await credential.client.cleanup()
        await self._fallback.cleanup()

    async def __aenter__(self) -> "AIGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


# ============================================================================
# Factory Function
# ============================================================================


def create_gateway(settings: Optional[GatewaySettings] = None) -> AIGateway:
    """Build a gateway wired to Gemini, Groq and OpenAI from settings.

    Args:
        settings: Optional settings. Loaded from the environment if omitted.

    Returns:
        Configured AIGateway
    """
    settings = settings or load_settings()

    shared = {
        "timeout_seconds": settings.request_timeout,
        "max_tokens": settings.max_tokens,
        "temperature": settings.temperature,
    }

    clients = [
        GeminiProvider({**shared, "api_key": key, "model": settings.gemini_model})
        for key in settings.gemini_api_keys
    ]
    pool = CredentialPool(
        clients,
        cooldown_seconds=settings.cooldown_seconds,
        max_error_count=settings.max_error_count,
    )

    chain = ProviderFallbackChain(
        [
            GroqProvider({**shared, "api_key": settings.groq_api_key, "model": settings.groq_model}),
            OpenAIProvider({**shared, "api_key": settings.openai_api_key, "model": settings.openai_model}),
        ],
        request_timeout=settings.request_timeout,
    )

    return AIGateway(pool, chain, settings)
