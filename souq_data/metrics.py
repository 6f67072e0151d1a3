"""
Prometheus metrics for the data-access layer.

Every call a service makes into a data source is counted and timed, labeled
by which source answered (``fixtures`` or ``supabase``). The process that
embeds this library decides whether and how to expose the default registry.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total source calls)
    - Histogram: Observations bucketed by value (e.g., call latency)

Example:
    >>> from souq_data.metrics import source_latency, source_requests
    >>> with source_latency.labels(source="fixtures", operation="list_listings").time():
    ...     page = await source.list_listings(filters, 1, 20)
    >>> source_requests.labels(
    ...     source="fixtures", operation="list_listings", status="success"
    ... ).inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Source Call Metrics
# =============================================================================

source_requests = Counter(
    "souq_source_requests_total",
    "Total data source calls made by the services",
    ["source", "operation", "status"],
)
"""
Counter for data source calls.

Labels:
    source: fixtures or supabase
    operation: Source method name (list_listings, toggle_favorite, ...)
    status: success, failure or timeout
"""

source_latency = Histogram(
    "souq_source_latency_seconds",
    "Data source call latency in seconds",
    ["source", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""
Histogram for data source call latency.

Labels:
    source: fixtures or supabase
    operation: Source method name

Buckets: 0.05s, 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, 10s, +Inf
"""

# =============================================================================
# HTTP Metrics (Supabase transport)
# =============================================================================

http_requests = Counter(
    "souq_supabase_http_requests_total",
    "Total HTTP requests sent to Supabase",
    ["method", "service", "status_code"],
)
"""
Counter for Supabase HTTP requests.

Labels:
    method: HTTP method
    service: rest, auth or storage
    status_code: HTTP status code, or "error" when no response was received
"""

# =============================================================================
# Hook State Metrics
# =============================================================================

stale_responses = Counter(
    "souq_stale_responses_total",
    "Responses discarded because a newer request superseded them",
    ["operation"],
)
"""Counter for superseded fetch responses that were not applied to state."""

login_lockouts = Counter(
    "souq_login_lockouts_total",
    "Total number of login lockouts triggered by repeated failures",
)
"""Counter for login lockouts."""
