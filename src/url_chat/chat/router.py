"""FastAPI router for the chat endpoint.

Mount in the main app::

    from url_chat.chat.router import router as chat_router
    app.include_router(chat_router, prefix="/api")

Endpoints:

- ``POST /chat``: answer a message, augmenting it with the text of the
  first URL it contains.

Notes:
    - The route reads the JSON body itself so that malformed bodies and a
      missing ``message`` share the orchestrator's ``{"error": ...}`` shape.
    - Rate-limit state is reported in ``X-RateLimit-*`` headers on every
      admitted or denied response, plus ``Retry-After`` on 429.
    - If the client disconnects mid-pipeline the pipeline task is cancelled
      so no browser or completion call keeps running for nobody.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from url_chat.api.dependencies import get_orchestrator
from url_chat.api.limiter import caller_key
from url_chat.chat.orchestrator import ChatOrchestrator, ChatOutcome
from url_chat.config.settings import Settings, get_settings
from url_chat.core.schemas.chat import ChatError, ChatReply, ChatRequest, RateLimitedReply

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

T = TypeVar("T")

#: Seconds between client-disconnect polls while the pipeline runs.
DISCONNECT_POLL_INTERVAL: float = 0.5

#: Non-standard status logged (never delivered) when the client went away.
CLIENT_CLOSED_REQUEST: int = 499


class ClientDisconnected(Exception):
    """The client closed the connection before the pipeline finished."""


async def run_until_disconnect(
    request: Request,
    awaitable: Awaitable[T],
    poll_interval: float = DISCONNECT_POLL_INTERVAL,
) -> T:
    """Await *awaitable*, cancelling it if the client disconnects first.

    Raises:
        ClientDisconnected: If the client went away; the task has been
            cancelled and awaited by then.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


def rate_limit_headers(outcome: ChatOutcome) -> dict[str, str]:
    decision = outcome.rate_limit
    if decision is None:
        return {}
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(int(decision.reset_at.timestamp())),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after())
    return headers


@router.post(
    "/chat",
    response_model=ChatReply,
    responses={
        400: {"model": ChatError, "description": "Missing or blank message."},
        429: {"model": RateLimitedReply, "description": "Rate limit exceeded."},
        500: {"model": ChatError, "description": "Completion or internal failure."},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ChatRequest.model_json_schema()}},
        }
    },
)
async def chat(
    request: Request,
    orchestrator: Annotated[ChatOrchestrator, Depends(get_orchestrator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Answer a chat message.

    Returns:
        ``200 {"reply"}``, ``400 {"error"}``, ``429 {"error", "remaining",
        "reset_at"}`` or ``500 {"error"}``.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    message = payload.get("message") if isinstance(payload, dict) else None

    key = caller_key(request, trust_forwarded_for=settings.trust_forwarded_for)
    try:
        outcome = await run_until_disconnect(request, orchestrator.handle(message, key))
    except ClientDisconnected:
        logger.info("chat: client disconnected; pipeline cancelled")
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body(),
        headers=rate_limit_headers(outcome),
    )
