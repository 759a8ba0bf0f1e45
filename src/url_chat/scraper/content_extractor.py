"""Selector-driven text extraction from rendered HTML.

The rendered page is parsed with BeautifulSoup's lenient ``html.parser``
backend, every element matching the configured CSS selectors is collected in
document order, and the visible text of each match becomes one line of the
result.  Empty matches are kept as empty lines so that line *i* of the output
always corresponds to match *i* in the page.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from bs4 import BeautifulSoup

from url_chat.scraper.config import (
    DEFAULT_SELECTORS,
    FRAGMENT_SEPARATOR,
    INVISIBLE_TAGS,
)

logger = logging.getLogger(__name__)


def _selector_group(selectors: Iterable[str]) -> str:
    """Combine selectors into one CSS selector group.

    A single ``select()`` over a group returns matches in document order,
    whereas one ``select()`` per selector would order them by selector.
    """
    return ", ".join(s.strip() for s in selectors if s and s.strip())


def _truncate(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    logger.debug("scraper: truncated extracted content to %d chars", max_chars)
    return text[:max_chars]


def extract_content(
    html: str,
    selectors: Iterable[str] | None = None,
    *,
    max_chars: int | None = None,
) -> str:
    """Extract the text of every element matching *selectors*.

    Entities are decoded and nested markup is stripped by
    ``Tag.get_text()``.  ``<script>``, ``<style>``, ``<noscript>`` and
    ``<template>`` content is removed first since it is never visible.

    Args:
        html: Rendered HTML string (may be partial or malformed).
        selectors: CSS selectors to match.  Defaults to paragraphs and
            headings ``h1`` to ``h6``.
        max_chars: Optional cap on the length of the returned string.

    Returns:
        Matched fragments joined with ``"\\n"``.  ``""`` when nothing
        matches, when *html* is empty, or when parsing fails outright.
    """
    if not html:
        return ""

    group = _selector_group(DEFAULT_SELECTORS if selectors is None else selectors)
    if not group:
        return ""

    try:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup.find_all(list(INVISIBLE_TAGS)):
            tag.decompose()
        fragments = [element.get_text() for element in soup.select(group)]
    except Exception as exc:  # noqa: BLE001
        logger.warning("scraper: content extraction failed: %s", exc)
        return ""

    text = FRAGMENT_SEPARATOR.join(fragments).replace("\x00", "")
    return _truncate(text, max_chars)
