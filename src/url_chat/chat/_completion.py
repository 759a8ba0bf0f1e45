"""Low-level chat-completion client.

This module is private to the ``chat`` package (indicated by the leading
underscore).  External code depends on the :class:`CompletionProvider`
protocol and receives a concrete provider through dependency injection.

Error handling maps every failure to
:class:`~url_chat.core.exceptions.CompletionFailedError`:
- Non-2xx responses (including HTTP 429 quota errors)
- Network errors and timeouts
- Bodies that are not JSON or lack a ``choices`` list
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from url_chat.chat.config import DEFAULT_COMPLETION_TIMEOUT, GROQ_API_URL
from url_chat.chat.prompt import CompletionRequest
from url_chat.core.exceptions import CompletionFailedError

logger = logging.getLogger(__name__)


class CompletionProvider(Protocol):
    """Anything that turns a :class:`CompletionRequest` into reply text."""

    async def complete(self, request: CompletionRequest) -> str: ...


def extract_reply(response: dict[str, Any]) -> str:
    """Return ``choices[0].message.content`` from a completion response.

    A missing or ``null`` content field yields ``""``; a body without a
    non-empty ``choices`` list is malformed.

    Raises:
        CompletionFailedError: If the body has no usable ``choices``.
    """
    choices = response.get("choices") if isinstance(response, dict) else None
    if not isinstance(choices, list) or not choices:
        raise CompletionFailedError("completion response has no choices")
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


class OpenAICompatibleProvider:
    """Completion provider for OpenAI-compatible endpoints (Groq by default).

    Args:
        client: Shared :class:`httpx.AsyncClient`; owned by the caller.
        api_key: Bearer token.
        api_url: Chat completions endpoint.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        api_url: str = GROQ_API_URL,
        timeout: float = DEFAULT_COMPLETION_TIMEOUT,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout

    async def complete(self, request: CompletionRequest) -> str:
        """POST *request* once and return the reply text.

        Raises:
            CompletionFailedError: On any provider, network, or parse failure.
        """
        if not self.api_key:
            raise CompletionFailedError("completion API key is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self.client.post(
                self.api_url,
                json=request.to_payload(),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            raise CompletionFailedError(
                f"completion provider returned HTTP {code}: {exc.response.text[:200]}",
                status_code=code,
            ) from exc
        except httpx.TimeoutException as exc:
            raise CompletionFailedError(
                f"completion provider timed out after {self.timeout:.0f}s"
            ) from exc
        except httpx.RequestError as exc:
            raise CompletionFailedError(
                f"completion provider network error: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise CompletionFailedError(
                f"completion provider returned invalid JSON: {exc}",
                status_code=response.status_code,
            ) from exc

        reply = extract_reply(body)
        logger.debug(
            "completion: received %d chars from model %s", len(reply), request.model
        )
        return reply
