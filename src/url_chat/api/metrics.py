"""Prometheus metrics for the HTTP layer of url-chat.

Module-level collectors on the default ``REGISTRY``, recorded by the request
middleware in :mod:`url_chat.api.main`.  Pipeline counters live in
:mod:`url_chat.chat.metrics`; the scrape endpoint serves both.

  http_requests_total{method, path, status}
      Counter: HTTP requests handled by the FastAPI application.

  http_request_duration_seconds{method, path}
      Histogram: HTTP request latency in seconds.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# HTTP layer (recorded by the request middleware)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "Requests served, by route template and status.",
    labelnames=["method", "path", "status"],
)

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "Time from request receipt to response, in seconds.",
    labelnames=["method", "path"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)
"""Buckets reach 60 s: a request may include a 30 s navigation plus a
completion call."""


# ---------------------------------------------------------------------------
# Exposition
# ---------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    """Return the text exposition of the default registry and its content type."""
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
