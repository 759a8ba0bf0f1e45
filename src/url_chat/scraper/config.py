"""Constants and tuning parameters for the page fetch-and-extract service."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Extraction selectors
# ---------------------------------------------------------------------------

#: Paragraphs and every heading level, in document order.
DEFAULT_SELECTORS: tuple[str, ...] = ("p", "h1", "h2", "h3", "h4", "h5", "h6")

#: Stricter variant: only paragraphs nested inside an ``<article>`` element.
ARTICLE_SELECTORS: tuple[str, ...] = ("article p",)

#: Elements whose text is never visible and is removed before extraction.
INVISIBLE_TAGS: frozenset[str] = frozenset({"script", "style", "noscript", "template"})

#: Separator placed between extracted fragments.
FRAGMENT_SEPARATOR: str = "\n"

# ---------------------------------------------------------------------------
# Navigation timing
# ---------------------------------------------------------------------------

#: Default navigation timeout in seconds (navigation + network-idle wait).
DEFAULT_NAVIGATION_TIMEOUT: float = 30.0

#: The page counts as idle while at most this many requests are in flight...
NETWORK_IDLE_MAX_INFLIGHT: int = 2

#: ...for at least this many seconds.
NETWORK_IDLE_QUIET_SECONDS: float = 0.5

# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------

#: User-agent string presented by the headless browser.
USER_AGENT: str = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

#: URL schemes the fetcher will navigate to.
ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})
