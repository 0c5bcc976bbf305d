"""Configuration for the AI gateway.

All scalar values can be overridden via environment variables with the
``AI_GATEWAY_`` prefix. Provider secrets use the conventional variable names
(``GEMINI_API_KEY``, ``GEMINI_API_KEY_<n>``, ``GROQ_API_KEY``,
``OPENAI_API_KEY``).
"""

import logging
import logging.handlers
import os
import re
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PRIMARY_KEY_VAR = "GEMINI_API_KEY"
_NUMBERED_KEY_PATTERN = re.compile(r"^GEMINI_API_KEY_(\d+)$")

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class GatewaySettings(BaseSettings):
    """Settings read once at startup."""

    model_config = SettingsConfigDict(
        env_prefix="AI_GATEWAY_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Primary provider
    gemini_api_keys: List[str] = Field(
        default_factory=list,
        description="Primary credentials, in selection order"
    )
    gemini_model: str = Field(default="gemini-2.0-flash-exp")

    # Fallback providers (absent secret disables the provider)
    groq_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GROQ_API_KEY", "groq_api_key"),
    )
    groq_model: str = Field(default="llama3-8b-8192")
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_model: str = Field(default="gpt-3.5-turbo")

    # Request shape
    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Resilience
    max_concurrency: int = Field(
        default=2, gt=0,
        description="Simultaneous primary-provider calls"
    )
    cooldown_seconds: float = Field(
        default=60.0, gt=0,
        description="Base cooldown after a rate limit"
    )
    max_error_count: int = Field(
        default=5, gt=0,
        description="Errors before a credential is hard-disabled"
    )
    max_primary_attempts: int = Field(default=3, gt=0)
    request_timeout: float = Field(
        default=30.0, gt=0,
        description="Ceiling for a single upstream call (seconds)"
    )
    no_credential_backoff_seconds: float = Field(
        default=1.0, ge=0,
        description="Linear backoff unit when no credential is eligible"
    )
    error_backoff_seconds: float = Field(
        default=2.0, ge=0,
        description="Linear backoff unit after a non-rate-limit error"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT)
    log_file: Optional[str] = Field(default=None)
    log_max_file_size_mb: int = Field(default=50, gt=0)
    log_backup_count: int = Field(default=5, ge=0)

    @field_validator("gemini_api_keys")
    @classmethod
    def _drop_blank_keys(cls, keys: List[str]) -> List[str]:
        return _dedupe([k.strip() for k in keys if k and k.strip()])

    @field_validator("groq_api_key", "openai_api_key")
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


def _dedupe(keys: List[str]) -> List[str]:
    seen = set()
    unique = []
    for key in keys:
        if key in seen:
            continue
        seen.add(key)
        unique.append(key)
    return unique


def collect_primary_keys(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Collect Gemini keys from the environment.

    ``GEMINI_API_KEY`` comes first, followed by ``GEMINI_API_KEY_<n>`` in
    numeric order. Blank values and duplicates are skipped.
    """
    environ = os.environ if environ is None else environ
    keys = []

    if environ.get(PRIMARY_KEY_VAR, "").strip():
        keys.append(environ[PRIMARY_KEY_VAR].strip())

    numbered = []
    for name, value in environ.items():
        match = _NUMBERED_KEY_PATTERN.match(name)
        if match and value.strip():
            numbered.append((int(match.group(1)), value.strip()))
    keys.extend(value for _, value in sorted(numbered))

    return _dedupe(keys)


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides) -> GatewaySettings:
    """Build settings from the environment, including numbered primary keys.

    Args:
        environ: Mapping searched for ``GEMINI_API_KEY`` and
            ``GEMINI_API_KEY_<n>`` only. Every other field, fallback keys
            and ``AI_GATEWAY_*`` settings included, is read by
            ``GatewaySettings`` from ``os.environ`` and ``.env``; pass
            those as keyword overrides instead.
        **overrides: Explicit field values, taking precedence over the
            environment.
    """
    settings = GatewaySettings(**overrides)
    if not settings.gemini_api_keys:
        keys = collect_primary_keys(environ)
        if keys:
            settings = settings.model_copy(update={"gemini_api_keys": keys})

    if not settings.gemini_api_keys:
        logger.warning(
            "No Gemini API keys found. Expected: GEMINI_API_KEY, GEMINI_API_KEY_1, GEMINI_API_KEY_2, etc."
        )
    if not (settings.groq_api_key or settings.openai_api_key):
        logger.warning("No fallback providers configured. Set GROQ_API_KEY or OPENAI_API_KEY for fallback support")

    return settings


def configure_logging(settings: GatewaySettings) -> None:
    """Set up logging based on configuration."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if settings.log_file:
        log_file = Path(settings.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=settings.log_max_file_size_mb * 1024 * 1024,
                backupCount=settings.log_backup_count
            )
        )

    formatter = logging.Formatter(settings.log_format)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        handlers=handlers,
        force=True,
    )
