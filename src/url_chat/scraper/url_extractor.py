"""Locate the first URL in free-form chat text."""

from __future__ import annotations

import re

_URL_RE = re.compile(r"https?://\S+")


def extract_url(text: object) -> str | None:
    """Return the first ``http``/``https`` URL in *text*, or ``None``.

    A URL is the scheme followed by ``://`` and one or more non-whitespace
    characters, so trailing punctuation attached to the URL is kept.

    Args:
        text: The raw user message.  Non-string input yields ``None``.

    Returns:
        The first matching substring in document order, or ``None``.
    """
    if not isinstance(text, str):
        return None
    match = _URL_RE.search(text)
    return match.group(0) if match else None
