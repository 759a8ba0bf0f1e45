"""Health check route handlers for the url-chat API.

``GET /api/health``
    Dependency check: pings the rate-limit store and reports whether the
    Playwright driver is running.  Always returns HTTP 200; the ``status``
    field distinguishes ``"ok"`` from ``"degraded"``.

These endpoints are diagnostic and must never raise HTTP 5xx errors.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])

_PING_TIMEOUT_SECONDS: float = 2.0


async def _check_redis(request: Request) -> str:
    """Send ``PING`` to the rate-limit store.

    Returns:
        ``"ok"`` if Redis responds in time, ``"error"`` otherwise.
    """
    client = getattr(request.app.state, "redis", None)
    if client is None:
        return "error"
    try:
        await asyncio.wait_for(client.ping(), timeout=_PING_TIMEOUT_SECONDS)
        return "ok"
    except Exception:
        logger.exception("Health check: Redis unreachable")
        return "error"


def _check_browser(request: Request) -> str:
    engine = getattr(request.app.state, "browser_engine", None)
    return "ok" if engine is not None and engine.running else "error"


@router.get("/api/health")
async def api_health(request: Request) -> JSONResponse:
    """Report rate-limit store and browser engine status.

    Returns:
        JSON ``{"status", "redis", "browser", "timestamp"}``.
    """
    redis_status = await _check_redis(request)
    browser_status = _check_browser(request)
    overall = "ok" if redis_status == browser_status == "ok" else "degraded"
    return JSONResponse(
        {
            "status": overall,
            "redis": redis_status,
            "browser": browser_status,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    )
