"""Primary-provider credential pool.

Hands out one usable credential per attempt and records the outcome of each
call. A credential is eligible while its cooldown has expired and its error
count is below ``max_error_count``.

Cooldowns form a three-step ladder, derived from the error count at the
moment a credential is marked:

- rate limited: ``cooldown``
- error threshold reached through plain errors: ``2 * cooldown``
- error threshold reached through rate limits: ``5 * cooldown``
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .base import BaseLLMProvider
from .metrics import CREDENTIAL_COOLDOWNS

logger = logging.getLogger(__name__)

ERROR_DISABLE_MULTIPLIER = 2
HARD_DISABLE_MULTIPLIER = 5


@dataclass
class Credential:
    """One primary-provider API key and its runtime state."""
    label: str
    client: BaseLLMProvider
    last_used_at: float = 0.0
    cooldown_until: float = 0.0
    error_count: int = 0
    available: bool = True


class CredentialPool:
    """Pool of interchangeable credentials for the primary provider.

    Selection is first-eligible in pool order, not round-robin: a healthy
    credential at the front of the list keeps receiving traffic.

    All state changes happen under a single pool lock.
    """

    def __init__(
        self,
        clients: Sequence[BaseLLMProvider] = (),
        cooldown_seconds: float = 60.0,
        max_error_count: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the pool.

        Args:
            clients: One provider client per credential, in selection order
            cooldown_seconds: Base cooldown applied after a rate limit
            max_error_count: Error count at which a credential is disabled
            clock: Monotonic time source in seconds
        """
        self.cooldown_seconds = cooldown_seconds
        self.max_error_count = max_error_count
        self._clock = clock
        self._lock = threading.Lock()
        self._credentials: List[Credential] = [
            Credential(label=client.key_label, client=client) for client in clients
        ]

        if self._credentials:
            logger.info(f"Initialized credential pool with {len(self._credentials)} keys")
        else:
            logger.warning("Credential pool is empty; primary provider disabled")

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> List[Credential]:
        return list(self._credentials)

    def _is_eligible(self, credential: Credential, now: float) -> bool:
        return credential.cooldown_until <= now and credential.error_count < self.max_error_count

    def select_credential(self) -> Optional[Credential]:
        """Return the first eligible credential, or None."""
        with self._lock:
            now = self._clock()
            for credential in self._credentials:
                credential.available = self._is_eligible(credential, now)

            selected = next((c for c in self._credentials if c.available), None)
            if selected is None:
                logger.warning("No available Gemini keys (all in cooldown or error state)")
                return None

            selected.last_used_at = now
            logger.debug(f"Using Gemini key {selected.label}")
            return selected

    def _extend_cooldown(self, credential: Credential, until: float) -> None:
        # A later mark never shortens a cooldown already in force
        credential.cooldown_until = max(credential.cooldown_until, until)

    def mark_rate_limited(self, credential: Credential) -> None:
        """Put a credential into cooldown after a rate-limit response."""
        with self._lock:
            now = self._clock()
            credential.error_count += 1
            credential.available = False

            if credential.error_count >= self.max_error_count:
                self._extend_cooldown(credential, now + self.cooldown_seconds * HARD_DISABLE_MULTIPLIER)
                CREDENTIAL_COOLDOWNS.labels(tier="hard_disable").inc()
                logger.error(
                    f"Key {credential.label} disabled due to excessive errors ({credential.error_count})"
                )
            else:
                self._extend_cooldown(credential, now + self.cooldown_seconds)
                CREDENTIAL_COOLDOWNS.labels(tier="rate_limit").inc()
                logger.warning(
                    f"Key {credential.label} rate-limited, cooldown for "
                    f"{credential.cooldown_until - now:.0f}s"
                )

    def mark_error(self, credential: Credential) -> None:
        """Record a non-rate-limit failure.

        Cooldown only applies once the error threshold is reached.
        """
        with self._lock:
            credential.error_count += 1

            if credential.error_count >= self.max_error_count:
                now = self._clock()
                credential.available = False
                self._extend_cooldown(credential, now + self.cooldown_seconds * ERROR_DISABLE_MULTIPLIER)
                CREDENTIAL_COOLDOWNS.labels(tier="error_disable").inc()
                logger.error(
                    f"Key {credential.label} temporarily disabled due to errors ({credential.error_count})"
                )

    def mark_success(self, credential: Credential) -> None:
        """Step the error count down by one after a successful call."""
        with self._lock:
            credential.error_count = max(0, credential.error_count - 1)

    def has_eligible(self) -> bool:
        """Check if any credential is currently eligible."""
        with self._lock:
            now = self._clock()
            return any(self._is_eligible(c, now) for c in self._credentials)

    def status(self) -> Dict[str, int]:
        """Get pool status for monitoring."""
        with self._lock:
            now = self._clock()
            return {
                "total": len(self._credentials),
                "eligible": sum(1 for c in self._credentials if self._is_eligible(c, now)),
                "in_cooldown": sum(1 for c in self._credentials if c.cooldown_until > now),
                "with_errors": sum(1 for c in self._credentials if c.error_count > 0),
            }

    def reset_all(self) -> None:
        """Return every credential to its initial eligible state."""
        with self._lock:
            for credential in self._credentials:
                credential.cooldown_until = 0.0
                credential.error_count = 0
                credential.available = True
        logger.info("All Gemini keys reset")
