"""Playwright-based headless browser fetcher for JavaScript-heavy pages.

Every call to :meth:`PageFetcher.fetch` launches its own Chromium process, so
no cookies, storage, or cache leak between chat requests.  Only the
Playwright driver (:class:`BrowserEngine`) is shared: it is started once in
the application lifespan and stopped at shutdown.

The browser is closed in a ``finally`` block on every exit path: success,
timeout, navigation error, or task cancellation.  Failures are returned as a
typed :class:`~url_chat.core.exceptions.FetchError` on
:attr:`FetchResult.error` rather than raised, because the caller always
degrades to empty content.

Install Playwright and download the Chromium browser binary::

    pip install playwright>=1.48
    playwright install chromium
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from url_chat.core.exceptions import (
    FetchError,
    InvalidURLError,
    LaunchFailedError,
    NavigationFailedError,
    NavigationTimeoutError,
)
from url_chat.scraper.config import (
    ALLOWED_SCHEMES,
    DEFAULT_NAVIGATION_TIMEOUT,
    NETWORK_IDLE_MAX_INFLIGHT,
    NETWORK_IDLE_QUIET_SECONDS,
    USER_AGENT,
)

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


class FetchState(str, enum.Enum):
    """Lifecycle states of a single browser fetch."""

    LAUNCHING = "launching"
    NAVIGATE_PENDING = "navigate_pending"
    LOADED = "loaded"
    CLOSED = "closed"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({FetchState.CLOSED, FetchState.FAILED})


@dataclass
class FetchSession:
    """One browser-page lifecycle, exclusively owned by one request.

    Attributes:
        url: Target URL.
        state: Current lifecycle state.
        history: Every state entered, in order.
    """

    url: str
    state: FetchState = FetchState.LAUNCHING
    history: list[FetchState] = field(default_factory=lambda: [FetchState.LAUNCHING])

    def advance(self, state: FetchState) -> None:
        if self.state in _TERMINAL_STATES:
            raise RuntimeError(f"fetch session already {self.state.value}")
        self.state = state
        self.history.append(state)

    @property
    def finished(self) -> bool:
        return self.state in _TERMINAL_STATES


@dataclass
class FetchResult:
    """Outcome of one :meth:`PageFetcher.fetch` call.

    Attributes:
        url: The URL that was requested.
        session: The (terminal) session that produced this result.
        html: Fully rendered HTML, or ``None`` on failure.
        final_url: Page URL after redirects, or ``None`` on failure.
        status_code: Status of the main document response, if any.
        error: Typed failure, or ``None`` on success.
        elapsed_ms: Wall-clock duration of the whole lifecycle.
    """

    url: str
    session: FetchSession
    html: str | None = None
    final_url: str | None = None
    status_code: int | None = None
    error: FetchError | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Network-idle detection
# ---------------------------------------------------------------------------


class NetworkIdleMonitor:
    """Track in-flight requests on a page and wait for a quiet period.

    Playwright's built-in ``"networkidle"`` requires *zero* open
    connections, which never happens on pages with long-polling or
    analytics beacons.  This monitor treats the page as idle once at most
    ``max_inflight`` requests have been outstanding for ``quiet_seconds``.
    Traffic that keeps the count at or below ``max_inflight`` does not
    restart the quiet period; only going above it does.
    """

    def __init__(
        self,
        max_inflight: int = NETWORK_IDLE_MAX_INFLIGHT,
        quiet_seconds: float = NETWORK_IDLE_QUIET_SECONDS,
    ) -> None:
        self.max_inflight = max_inflight
        self.quiet_seconds = quiet_seconds
        self.inflight = 0
        #: Monotonic time the count last dropped to ``max_inflight`` or
        #: below; ``None`` while it is above.
        self.quiet_since: float | None = time.monotonic()
        self._changed = asyncio.Event()

    def attach(self, page: Page) -> None:
        page.on("request", self._on_request)
        page.on("requestfinished", self._on_request_done)
        page.on("requestfailed", self._on_request_done)

    def _on_request(self, _request: Any) -> None:
        self.inflight += 1
        if self.inflight > self.max_inflight and self.quiet_since is not None:
            self.quiet_since = None
            self._changed.set()

    def _on_request_done(self, _request: Any) -> None:
        self.inflight = max(0, self.inflight - 1)
        if self.inflight <= self.max_inflight and self.quiet_since is None:
            self.quiet_since = time.monotonic()
            self._changed.set()

    async def wait_for_idle(self) -> None:
        """Return once the in-flight count stayed low for ``quiet_seconds``.

        The caller bounds the total wait.
        """
        while True:
            self._changed.clear()
            if self.quiet_since is None:
                await self._changed.wait()
                continue
            remaining = self.quiet_since + self.quiet_seconds - time.monotonic()
            if remaining <= 0:
                return
            try:
                await asyncio.wait_for(self._changed.wait(), remaining)
            except asyncio.TimeoutError:
                return


# ---------------------------------------------------------------------------
# Browser engine (process-wide)
# ---------------------------------------------------------------------------


class BrowserEngine:
    """Process-wide Playwright driver used to launch per-request browsers.

    Call :meth:`start` once at application startup and :meth:`stop` at
    shutdown.  The engine itself holds no browser; each fetch launches and
    closes its own.
    """

    def __init__(self, *, headless: bool = True) -> None:
        self.headless = headless
        self._playwright: Playwright | None = None

    @property
    def running(self) -> bool:
        return self._playwright is not None

    async def start(self) -> None:
        if self._playwright is not None:
            return
        self._playwright = await async_playwright().start()
        logger.info("scraper: playwright driver started (headless=%s)", self.headless)

    async def stop(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
            logger.info("scraper: playwright driver stopped")
        except Exception as exc:  # noqa: BLE001
            logger.warning("scraper: error stopping playwright: %s", exc)
        self._playwright = None

    async def launch(self) -> Browser:
        """Launch a fresh, isolated Chromium process.

        Raises:
            LaunchFailedError: If the driver is not running or Chromium
                cannot be started.
        """
        if self._playwright is None:
            raise LaunchFailedError("browser engine is not running")
        try:
            return await self._playwright.chromium.launch(headless=self.headless)
        except Exception as exc:
            raise LaunchFailedError(f"failed to launch browser: {exc}") from exc


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


def _validate_url(url: str) -> None:
    parsed = urllib.parse.urlsplit(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise InvalidURLError(f"not an absolute http(s) URL: {url!r}", url=url)


def _classify_playwright_error(exc: PlaywrightError, url: str) -> FetchError:
    message = str(exc)
    if "invalid url" in message.lower():
        return InvalidURLError(f"browser rejected URL: {message}", url=url)
    return NavigationFailedError(f"navigation failed: {message}", url=url)


class PageFetcher:
    """Fetch fully rendered HTML for a URL with a throwaway browser.

    Args:
        engine: The shared :class:`BrowserEngine`.
        navigation_timeout: Default cap in seconds on navigation plus the
            network-idle wait.
    """

    def __init__(
        self,
        engine: BrowserEngine,
        *,
        navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
    ) -> None:
        self.engine = engine
        self.navigation_timeout = navigation_timeout

    async def fetch(self, url: str, timeout: float | None = None) -> FetchResult:
        """Launch a browser, render *url*, return its HTML, close the browser.

        Args:
            url: Absolute ``http``/``https`` URL.
            timeout: Override for :attr:`navigation_timeout` (seconds).

        Returns:
            A :class:`FetchResult` whose session is always terminal.  On
            failure ``error`` holds an :class:`InvalidURLError`,
            :class:`NavigationTimeoutError`, :class:`NavigationFailedError`
            or :class:`LaunchFailedError`.
        """
        timeout = self.navigation_timeout if timeout is None else timeout
        session = FetchSession(url=url)
        result = FetchResult(url=url, session=session)
        start = time.perf_counter()
        browser: Browser | None = None

        try:
            _validate_url(url)
            browser = await self.engine.launch()
            session.advance(FetchState.NAVIGATE_PENDING)
            html, final_url, status_code = await self._render(browser, url, timeout)
            session.advance(FetchState.LOADED)
            result.html = html
            result.final_url = final_url
            result.status_code = status_code
        except FetchError as exc:
            result.error = exc
        except PlaywrightTimeoutError:
            result.error = NavigationTimeoutError(
                f"navigation exceeded {timeout:.1f}s", url=url
            )
        except PlaywrightError as exc:
            result.error = _classify_playwright_error(exc, url)
        except Exception as exc:  # noqa: BLE001
            result.error = NavigationFailedError(f"unexpected browser error: {exc}", url=url)
        finally:
            if browser is not None:
                try:
                    await browser.close()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("scraper: error closing browser for %s: %s", url, exc)
            loaded = session.state == FetchState.LOADED
            session.advance(FetchState.CLOSED if loaded else FetchState.FAILED)
            result.elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

        if result.error is not None:
            logger.warning(
                "scraper: fetch failed for %s (%s): %s",
                url,
                result.error.kind,
                result.error,
            )
        else:
            logger.debug(
                "scraper: rendered %d chars from %s in %.0fms",
                len(result.html or ""),
                url,
                result.elapsed_ms,
            )
        return result

    async def _render(
        self, browser: Browser, url: str, timeout: float
    ) -> tuple[str, str, int | None]:
        """Navigate and wait for network idle, all within *timeout* seconds."""
        context = await browser.new_context(user_agent=USER_AGENT)
        page = await context.new_page()
        monitor = NetworkIdleMonitor()
        monitor.attach(page)
        deadline = time.monotonic() + timeout

        response = await page.goto(url, timeout=timeout * 1000, wait_until="load")

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise NavigationTimeoutError(f"navigation exceeded {timeout:.1f}s", url=url)
        try:
            await asyncio.wait_for(monitor.wait_for_idle(), remaining)
        except asyncio.TimeoutError as exc:
            raise NavigationTimeoutError(
                f"network did not go idle within {timeout:.1f}s", url=url
            ) from exc

        html = await page.content()
        status_code = response.status if response is not None else None
        return html, page.url, status_code
