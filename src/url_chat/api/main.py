"""url-chat ASGI application.

``create_app()`` wires settings, logging, middleware and routers;
``lifespan`` owns the three process-wide clients (Redis for the rate
limiter, the Playwright driver for page fetches, and the ``httpx`` client
for completions) and publishes them on ``app.state`` for
:mod:`url_chat.api.dependencies`.

Run locally::

    uvicorn url_chat.api.main:app --reload

Behind a process manager::

    gunicorn url_chat.api.main:app -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Callable

import httpx
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from url_chat.api.metrics import (
    get_metrics_response,
    http_request_duration_seconds,
    http_requests_total,
)
from url_chat.chat._completion import OpenAICompatibleProvider
from url_chat.chat.config import ERROR_INTERNAL
from url_chat.config.settings import get_settings
from url_chat.core.logging_config import configure_logging, request_id_var
from url_chat.core.rate_limiter import RateLimiter, create_redis_client
from url_chat.scraper.playwright_fetcher import BrowserEngine, PageFetcher

# Import-time default so that anything logged while the app is being built
# is rendered; create_app() re-applies the configured level.
configure_logging("INFO")

logger = structlog.get_logger(__name__)

#: Longest client-supplied ``X-Request-ID`` that is echoed back.
MAX_REQUEST_ID_LENGTH = 64


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """Own the process-wide clients for the life of the server.

    The browser engine is optional at startup: if the Playwright driver
    cannot start, page fetches fail with ``LaunchFailedError`` and chat
    requests are answered from the message alone.
    """
    settings = get_settings()
    state = application.state

    state.redis = create_redis_client(
        settings.redis_url,
        password=settings.redis_password,
        timeout=settings.rate_limit_store_timeout,
    )
    state.http_client = httpx.AsyncClient()
    state.browser_engine = BrowserEngine(headless=settings.browser_headless)
    try:
        await state.browser_engine.start()
    except Exception:
        logger.exception("browser_engine_unavailable")

    state.rate_limiter = RateLimiter(
        state.redis,
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        timeout=settings.rate_limit_store_timeout,
        prefix=settings.rate_limit_prefix,
    )
    state.page_fetcher = PageFetcher(
        state.browser_engine, navigation_timeout=settings.navigation_timeout
    )
    state.completion_provider = OpenAICompatibleProvider(
        state.http_client,
        settings.groq_api_key,
        api_url=settings.completion_api_url,
        timeout=settings.completion_timeout,
    )
    logger.info(
        "startup_complete",
        rate_limit=f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds}s",
        fail_open=settings.rate_limit_fail_open,
        browser_running=state.browser_engine.running,
        model=settings.completion_model,
    )

    try:
        yield
    finally:
        await state.browser_engine.stop()
        await state.http_client.aclose()
        await state.redis.aclose()
        logger.info("shutdown_complete")


def create_app() -> FastAPI:
    """Return a configured application.

    The module-level :data:`app` is built from this factory; tests call it
    directly to get an instance whose dependencies they can override.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description=(
            "Answers chat messages, adding the rendered text of the first "
            "linked web page to the prompt."
        ),
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    @application.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Tag the request with an id, then log and count its outcome.

        A client-supplied ``X-Request-ID`` is reused so that ids can be
        followed across services; otherwise a fresh one is generated.
        """
        request_id = (
            request.headers.get("x-request-id", "")[:MAX_REQUEST_ID_LENGTH]
            or uuid.uuid4().hex
        )
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = time.perf_counter() - started
            # Label by route template, not raw path, to bound cardinality.
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            http_requests_total.labels(
                method=request.method, path=path, status=str(status_code)
            ).inc()
            http_request_duration_seconds.labels(
                method=request.method, path=path
            ).observe(duration)
            fields = {
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(duration * 1000, 1),
            }
            if status_code >= 400:
                logger.warning("http_request", **fields)
            else:
                logger.info("http_request", **fields)

        response.headers["X-Request-ID"] = request_id
        return response

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", path=request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": ERROR_INTERNAL})

    from url_chat.api.routes import health as health_routes  # noqa: PLC0415
    from url_chat.chat.router import router as chat_router  # noqa: PLC0415

    application.include_router(health_routes.router)
    application.include_router(chat_router, prefix="/api")

    @application.get("/health", tags=["system"])
    async def liveness() -> JSONResponse:
        """Process liveness; touches no dependency."""
        return JSONResponse({"status": "ok"})

    if settings.metrics_enabled:

        @application.get("/metrics", tags=["system"], include_in_schema=False)
        async def metrics() -> Response:
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    return application


app = create_app()
"""Application instance served by uvicorn / gunicorn."""
