"""Application-wide exception hierarchy for url-chat.

All custom exceptions subclass ``UrlChatError``, enabling consistent error
handling and structured logging across the application.

Hierarchy::

    UrlChatError
    ├── InvalidRequestError             (HTTP 400)
    ├── RateLimitedError                (HTTP 429, decision: RateLimitDecision)
    ├── RateLimitStoreUnavailableError
    ├── FetchError                      (non-fatal, pipeline degrades)
    │   ├── InvalidURLError
    │   ├── NavigationTimeoutError
    │   ├── NavigationFailedError
    │   └── LaunchFailedError
    └── CompletionFailedError           (HTTP 500, detail kept server-side)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from url_chat.core.rate_limiter import RateLimitDecision


class UrlChatError(Exception):
    """Base class for all url-chat exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Request admission
# ---------------------------------------------------------------------------


class InvalidRequestError(UrlChatError):
    """Raised when the inbound chat request is malformed.

    The condition is user-correctable (missing or blank ``message``, body
    that is not a JSON object).
    """


class RateLimitedError(UrlChatError):
    """Raised when the caller has exhausted its sliding-window budget.

    Args:
        decision: The denying :class:`~url_chat.core.rate_limiter.RateLimitDecision`.
            Carries ``remaining`` and ``reset_at`` so the caller can back off.
    """

    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__(
            f"Rate limit exceeded; retry after {decision.reset_at.isoformat()}"
        )
        self.decision = decision


class RateLimitStoreUnavailableError(UrlChatError):
    """Raised when the shared counter store cannot be reached in time.

    The limiter never guesses an answer; the orchestrator applies the
    configured fail-open / fail-closed policy.

    Args:
        key: The rate-limit key being checked.
        timeout: The store timeout (seconds) in force.
    """

    def __init__(self, key: str, timeout: float, reason: str = "") -> None:
        msg = f"Rate-limit store unavailable for '{key}' (timeout {timeout:.1f}s)"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.key = key
        self.timeout = timeout


# ---------------------------------------------------------------------------
# Page fetching
# ---------------------------------------------------------------------------


class FetchError(UrlChatError):
    """Base class for headless-browser fetch failures.

    Fetch failures are always recoverable: the orchestrator proceeds with
    empty extracted content.

    Args:
        message: Human-readable description of the failure.
        url: The URL that was being fetched.
    """

    kind: str = "fetch_error"

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class InvalidURLError(FetchError):
    """The URL is not an absolute ``http``/``https`` URL the browser can load."""

    kind = "invalid_url"


class NavigationTimeoutError(FetchError):
    """Navigation or the network-idle wait exceeded the navigation timeout."""

    kind = "navigation_timeout"


class NavigationFailedError(FetchError):
    """Navigation failed at the network level (DNS, refused connection, TLS)."""

    kind = "navigation_failed"


class LaunchFailedError(FetchError):
    """No browser process could be launched."""

    kind = "launch_failed"


# ---------------------------------------------------------------------------
# Completion provider
# ---------------------------------------------------------------------------


class CompletionFailedError(UrlChatError):
    """Raised when the completion provider call fails.

    Covers network errors, timeouts, non-2xx responses (including provider
    quota errors), and malformed response bodies.

    Args:
        message: Description of the failure.  Logged, never sent to callers.
        status_code: Upstream HTTP status, when one was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
