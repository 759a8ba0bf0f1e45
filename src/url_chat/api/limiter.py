"""Caller identity for rate limiting.

The sliding-window limiter itself lives in
:mod:`url_chat.core.rate_limiter`; this module only decides *who* is
calling.  Address resolution reuses slowapi's ``get_remote_address`` key
function so the key matches what a slowapi ``Limiter`` would use.

Usage in route modules::

    from url_chat.api.limiter import caller_key

    key = caller_key(request, trust_forwarded_for=settings.trust_forwarded_for)
"""

from __future__ import annotations

from fastapi import Request
from slowapi.util import get_remote_address


def caller_key(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Return the rate-limit key for *request*.

    Args:
        request: The incoming request.
        trust_forwarded_for: Use the first ``X-Forwarded-For`` hop instead of
            the socket peer.  Only safe behind a proxy that sets the header.

    Returns:
        The caller's address.  slowapi reports ``"127.0.0.1"`` when the
        request has no peer.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return get_remote_address(request)
