"""FastAPI dependency injection providers.

Process-wide services are built once in the application lifespan
(:func:`url_chat.api.main.lifespan`) and stored on ``app.state``.  Route
handlers receive them through the providers below, which tests replace via
``app.dependency_overrides``.

Dependency graph::

    get_rate_limiter ─┐
    get_page_fetcher ─┼─> get_orchestrator
    get_provider ─────┘
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from url_chat.chat._completion import CompletionProvider
from url_chat.chat.orchestrator import ChatOrchestrator
from url_chat.config.settings import Settings, get_settings
from url_chat.core.rate_limiter import RateLimiter
from url_chat.scraper.playwright_fetcher import PageFetcher


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_page_fetcher(request: Request) -> PageFetcher:
    return request.app.state.page_fetcher


def get_provider(request: Request) -> CompletionProvider:
    return request.app.state.completion_provider


def get_orchestrator(
    settings: Annotated[Settings, Depends(get_settings)],
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    fetcher: Annotated[PageFetcher, Depends(get_page_fetcher)],
    provider: Annotated[CompletionProvider, Depends(get_provider)],
) -> ChatOrchestrator:
    """Assemble a :class:`ChatOrchestrator` from the shared services.

    The orchestrator is stateless, so building one per request is cheap and
    keeps settings overrides in tests effective.
    """
    return ChatOrchestrator(
        rate_limiter=rate_limiter,
        fetcher=fetcher,
        provider=provider,
        selectors=settings.content_selectors,
        max_content_chars=settings.max_content_chars,
        navigation_timeout=settings.navigation_timeout,
        model=settings.completion_model,
        fail_open=settings.rate_limit_fail_open,
    )
