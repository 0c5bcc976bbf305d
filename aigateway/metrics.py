"""Prometheus metrics for the AI gateway."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


GATEWAY_REQUESTS = Counter(
    "aigateway_requests_total",
    "Gateway requests by outcome",
    ["outcome"],
)

RATE_LIMIT_EVENTS = Counter(
    "aigateway_rate_limit_events_total",
    "Rate-limit responses observed on the primary provider",
)

CREDENTIAL_COOLDOWNS = Counter(
    "aigateway_credential_cooldowns_total",
    "Credential cooldowns applied, by tier",
    ["tier"],
)

FALLBACK_ATTEMPTS = Counter(
    "aigateway_fallback_attempts_total",
    "Fallback provider attempts by provider and result",
    ["provider", "result"],
)

REQUEST_LATENCY = Histogram(
    "aigateway_request_latency_seconds",
    "End-to-end gateway latency in seconds",
    ["outcome"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
