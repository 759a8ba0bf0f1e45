"""Request augmentation pipeline.

:class:`ChatOrchestrator` is the only component with control-flow authority.
Per request it moves through::

    RECEIVED → VALIDATING → RATE_LIMIT_CHECK → [CONTENT_FETCH] →
    PROMPT_BUILD → COMPLETING → RESPONDED

with early exits to ``REJECTED`` (bad input, rate limited, store down and
fail-closed) and a ``DEGRADED`` detour when the page fetch fails.

Ordering is chosen for cost containment: input is validated before the
rate-limit budget is charged, and the rate limit is checked before any
browser is launched or any paid completion call is made.  Each external
call happens at most once; nothing is retried here.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from url_chat.chat._completion import CompletionProvider
from url_chat.chat.config import (
    DEFAULT_MODEL,
    ERROR_INTERNAL,
    ERROR_MESSAGE_REQUIRED,
    ERROR_RATE_LIMITED,
)
from url_chat.chat.metrics import (
    chat_requests_total,
    page_fetch_failures_total,
    rate_limit_decisions_total,
)
from url_chat.chat.prompt import assemble_prompt
from url_chat.core.exceptions import (
    CompletionFailedError,
    InvalidRequestError,
    RateLimitedError,
    RateLimitStoreUnavailableError,
)
from url_chat.core.rate_limiter import RateLimitDecision, RateLimiter
from url_chat.scraper.config import DEFAULT_NAVIGATION_TIMEOUT, DEFAULT_SELECTORS
from url_chat.scraper.content_extractor import extract_content
from url_chat.scraper.playwright_fetcher import FetchResult
from url_chat.scraper.url_extractor import extract_url

logger = structlog.get_logger(__name__)


class PipelineStage(str, enum.Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    RATE_LIMIT_CHECK = "rate_limit_check"
    CONTENT_FETCH = "content_fetch"
    DEGRADED = "degraded"
    PROMPT_BUILD = "prompt_build"
    COMPLETING = "completing"
    RESPONDED = "responded"
    REJECTED = "rejected"


# Outcomes that end the pipeline before any paid work is attempted.
_REJECTIONS = frozenset({"invalid_request", "rate_limited", "store_unavailable"})


class PageFetcherLike(Protocol):
    async def fetch(self, url: str, timeout: float | None = None) -> FetchResult: ...


@dataclass(frozen=True)
class ChatOutcome:
    """The single response produced for one chat request.

    Exactly one of ``reply`` / ``error`` is set.

    Attributes:
        status_code: HTTP status to send (200, 400, 429 or 500).
        reply: Completion text on success.
        error: Client-safe error message on failure.
        rate_limit: The admission decision, when the limiter answered.
        stages: Every pipeline stage entered, in order.
    """

    status_code: int
    reply: str | None = None
    error: str | None = None
    rate_limit: RateLimitDecision | None = None
    stages: tuple[PipelineStage, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    def body(self) -> dict[str, Any]:
        """JSON body for the HTTP response."""
        if self.ok:
            return {"reply": self.reply}
        payload: dict[str, Any] = {"error": self.error}
        if self.status_code == 429 and self.rate_limit is not None:
            payload["remaining"] = self.rate_limit.remaining
            payload["reset_at"] = self.rate_limit.reset_at.isoformat()
        return payload


def validate_message(message: object) -> str:
    """Return *message* if it is a string with non-whitespace content.

    Raises:
        InvalidRequestError: If the message is absent, not a string, or blank.
    """
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequestError(ERROR_MESSAGE_REQUIRED)
    return message


class ChatOrchestrator:
    """Run one chat request through the augmentation pipeline.

    All collaborators are injected; the orchestrator owns none of them.

    Args:
        rate_limiter: Sliding-window admission control.
        fetcher: Headless-browser page fetcher.
        provider: Completion provider.
        selectors: CSS selectors for content extraction.
        max_content_chars: Cap on extracted content length.
        navigation_timeout: Seconds allowed for each page fetch.
        model: Completion model identifier.
        fail_open: Admit requests when the rate-limit store is unreachable.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        fetcher: PageFetcherLike,
        provider: CompletionProvider,
        *,
        selectors: Sequence[str] = DEFAULT_SELECTORS,
        max_content_chars: int | None = None,
        navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
        model: str = DEFAULT_MODEL,
        fail_open: bool = False,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.fetcher = fetcher
        self.provider = provider
        self.selectors = tuple(selectors)
        self.max_content_chars = max_content_chars
        self.navigation_timeout = navigation_timeout
        self.model = model
        self.fail_open = fail_open

    async def handle(self, message: object, caller_key: str) -> ChatOutcome:
        """Process one request and return its outcome.

        Never raises for expected failure modes; only task cancellation
        propagates.

        Args:
            message: The ``message`` field of the request body, unvalidated.
            caller_key: Rate-limit identity of the caller.
        """
        stages: list[PipelineStage] = [PipelineStage.RECEIVED]
        decision: RateLimitDecision | None = None

        try:
            stages.append(PipelineStage.VALIDATING)
            text = validate_message(message)

            stages.append(PipelineStage.RATE_LIMIT_CHECK)
            decision = await self._admit(caller_key)

            extracted: str | None = None
            url = extract_url(text)
            if url is not None:
                stages.append(PipelineStage.CONTENT_FETCH)
                extracted = await self._fetch_content(url)
                if extracted is None:
                    stages.append(PipelineStage.DEGRADED)

            stages.append(PipelineStage.PROMPT_BUILD)
            prompt = assemble_prompt(text, extracted, model=self.model)

            stages.append(PipelineStage.COMPLETING)
            reply = await self.provider.complete(prompt)

        except InvalidRequestError as exc:
            return self._finish(stages, "invalid_request", status_code=400, error=str(exc))
        except RateLimitedError as exc:
            logger.info(
                "chat_rate_limited",
                caller=caller_key,
                reset_at=exc.decision.reset_at.isoformat(),
            )
            return self._finish(
                stages,
                "rate_limited",
                status_code=429,
                error=ERROR_RATE_LIMITED,
                rate_limit=exc.decision,
            )
        except RateLimitStoreUnavailableError as exc:
            logger.error("chat_rate_limit_store_unavailable", caller=caller_key, error=str(exc))
            return self._finish(stages, "store_unavailable", status_code=500, error=ERROR_INTERNAL)
        except CompletionFailedError as exc:
            logger.error(
                "chat_completion_failed",
                error=str(exc),
                upstream_status=exc.status_code,
            )
            return self._finish(
                stages, "completion_failed", status_code=500, error=ERROR_INTERNAL, rate_limit=decision
            )
        except Exception:
            logger.exception("chat_pipeline_failed")
            return self._finish(
                stages, "internal_error", status_code=500, error=ERROR_INTERNAL, rate_limit=decision
            )

        return self._finish(stages, "reply", status_code=200, reply=reply, rate_limit=decision)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _admit(self, caller_key: str) -> RateLimitDecision | None:
        """Return the admitting decision, or ``None`` when failing open.

        Raises:
            RateLimitedError: If the limiter denies the request.
            RateLimitStoreUnavailableError: If the store is down and the
                policy is fail-closed.
        """
        try:
            decision = await self.rate_limiter.check(caller_key)
        except RateLimitStoreUnavailableError:
            rate_limit_decisions_total.labels(decision="error").inc()
            if not self.fail_open:
                raise
            logger.warning("chat_rate_limit_fail_open", caller=caller_key)
            return None

        if not decision.allowed:
            rate_limit_decisions_total.labels(decision="denied").inc()
            raise RateLimitedError(decision)
        rate_limit_decisions_total.labels(decision="allowed").inc()
        return decision

    async def _fetch_content(self, url: str) -> str | None:
        """Fetch and extract *url*; ``None`` means the fetch degraded."""
        try:
            result = await self.fetcher.fetch(url, timeout=self.navigation_timeout)
        except Exception:
            page_fetch_failures_total.labels(kind="unexpected").inc()
            logger.exception("chat_fetch_degraded", url=url, kind="unexpected")
            return None

        if not result.ok or result.html is None:
            kind = result.error.kind if result.error is not None else "empty_document"
            page_fetch_failures_total.labels(kind=kind).inc()
            logger.warning(
                "chat_fetch_degraded",
                url=url,
                kind=kind,
                error=str(result.error) if result.error else None,
            )
            return None

        # Parsing a large document is CPU-bound; keep it off the event loop.
        content = await asyncio.to_thread(
            extract_content,
            result.html,
            self.selectors,
            max_chars=self.max_content_chars,
        )
        logger.info(
            "chat_content_extracted",
            url=url,
            final_url=result.final_url,
            chars=len(content),
        )
        return content

    @staticmethod
    def _finish(
        stages: list[PipelineStage],
        outcome: str,
        **kwargs: Any,
    ) -> ChatOutcome:
        if outcome in _REJECTIONS:
            stages.append(PipelineStage.REJECTED)
        stages.append(PipelineStage.RESPONDED)
        chat_requests_total.labels(outcome=outcome).inc()
        return ChatOutcome(stages=tuple(stages), **kwargs)
