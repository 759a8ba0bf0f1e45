"""Prometheus counters for the chat pipeline.

Registered on the default ``REGISTRY``, so ``GET /metrics`` serves them next
to the HTTP collectors in :mod:`url_chat.api.metrics`.

  chat_requests_total{outcome}
      Chat requests by terminal outcome (reply, invalid_request,
      rate_limited, store_unavailable, completion_failed, internal_error).

  rate_limit_decisions_total{decision}
      Admission decisions: allowed, denied or error.

  page_fetch_failures_total{kind}
      Page fetches that degraded to empty content, by ``FetchError.kind``
      or ``unexpected``.
"""

from __future__ import annotations

from prometheus_client import Counter

chat_requests_total: Counter = Counter(
    "chat_requests_total",
    "Chat requests by terminal outcome.",
    labelnames=["outcome"],
)

rate_limit_decisions_total: Counter = Counter(
    "rate_limit_decisions_total",
    "Rate-limit admission decisions.",
    labelnames=["decision"],
)

page_fetch_failures_total: Counter = Counter(
    "page_fetch_failures_total",
    "Page fetches that degraded to empty content, by failure kind.",
    labelnames=["kind"],
)
