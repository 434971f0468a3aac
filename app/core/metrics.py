"""Prometheus metric inventory.

All metrics live here so there is one place to look up what the service
measures.  Modules import the metric they own and increment it at the
point of action.  Counters only go up; tests assert on deltas.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Registration hashes a password (argon2), so the upper buckets matter.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Registration & subscription lifecycle
# ---------------------------------------------------------------------------

REGISTRATIONS = Counter(
    "dojo_registrations_total",
    "Dojo registration attempts by outcome",
    ["result"],  # "success" or "failure"
)

TRIAL_EXTENSIONS = Counter(
    "dojo_trial_extensions_total",
    "Trial extensions applied",
)

SUBSCRIPTION_CONVERSIONS = Counter(
    "dojo_subscription_conversions_total",
    "Organization subscription conversions by target tier",
    ["tier"],
)

# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit", "miss" or "error"
)
