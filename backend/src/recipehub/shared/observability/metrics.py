"""Prometheus metrics for recipe aggregation."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Provider metrics ─────────────────────────────────────────
PROVIDER_CALLS = Counter(
    "recipe_provider_calls_total",
    "Outbound provider calls made through the request optimizer",
    ["provider", "outcome"],  # ok / error
)

PROVIDER_CALL_LATENCY = Histogram(
    "recipe_provider_call_latency_seconds",
    "Outbound provider call latency",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

PROVIDER_QUOTA_REMAINING = Gauge(
    "recipe_provider_quota_remaining",
    "Calls left in the provider's daily quota",
    ["provider"],
)

QUOTA_REFUSALS = Counter(
    "recipe_quota_refusals_total",
    "Calls refused by the optimizer's quota policy",
    ["provider", "strategy"],
)

# ── Cache metrics ────────────────────────────────────────────
CACHE_LOOKUPS = Counter(
    "recipe_cache_lookups_total",
    "Cache lookups by layer and result",
    ["layer", "result"],  # memory|redis / hit|miss
)
