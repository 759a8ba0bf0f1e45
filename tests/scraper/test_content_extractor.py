"""Unit tests for the selector-driven content extractor.

Uses synthetic HTML covering document ordering, entity decoding, nested
markup, empty fragments, invisible elements, and malformed input.
"""

from __future__ import annotations

from unittest.mock import patch

from url_chat.scraper.config import ARTICLE_SELECTORS
from url_chat.scraper.content_extractor import extract_content


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_ARTICLE_PAGE_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
  <title>Release notes</title>
  <style>p { color: red; }</style>
</head>
<body>
  <nav><a href="/">Home</a></nav>
  <article>
    <h1>Version 2.0</h1>
    <p>The new release adds streaming responses.</p>
    <h2>Upgrading</h2>
    <p>Run the migration before restarting.</p>
  </article>
  <footer><p>Copyright notice</p></footer>
  <script>window.analytics = {};</script>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestDefaultSelectors:
    def test_heading_then_paragraph_joined_with_newline(self) -> None:
        assert extract_content("<h1>A</h1><p>B</p>") == "A\nB"

    def test_fragments_follow_document_order_not_selector_order(self) -> None:
        html = "<p>first</p><h3>second</h3><p>third</p><h1>fourth</h1>"

        assert extract_content(html) == "first\nsecond\nthird\nfourth"

    def test_full_page(self) -> None:
        result = extract_content(_ARTICLE_PAGE_HTML)

        assert result.split("\n") == [
            "Version 2.0",
            "The new release adds streaming responses.",
            "Upgrading",
            "Run the migration before restarting.",
            "Copyright notice",
        ]

    def test_non_matching_elements_ignored(self) -> None:
        assert extract_content("<div>layout</div><span>x</span><p>kept</p>") == "kept"


class TestTextNormalisation:
    def test_entities_decoded(self) -> None:
        assert extract_content("<p>Fish &amp; chips &lt;3</p>") == "Fish & chips <3"

    def test_nested_markup_stripped(self) -> None:
        html = '<p>Hello <b>bold</b> and <a href="/x">linked</a> world</p>'

        assert extract_content(html) == "Hello bold and linked world"

    def test_empty_fragments_kept_as_empty_lines(self) -> None:
        assert extract_content("<p>A</p><p></p><p>B</p>") == "A\n\nB"

    def test_invisible_elements_removed(self) -> None:
        html = "<p>Visible<script>var hidden = 1;</script><style>.x{}</style></p>"

        assert extract_content(html) == "Visible"

    def test_nul_bytes_removed(self) -> None:
        assert extract_content("<p>Text with\x00NUL\x00bytes</p>") == "Text withNULbytes"


class TestSelectors:
    def test_article_variant_only_matches_article_paragraphs(self) -> None:
        result = extract_content(_ARTICLE_PAGE_HTML, ARTICLE_SELECTORS)

        assert result == (
            "The new release adds streaming responses.\n"
            "Run the migration before restarting."
        )

    def test_custom_selector_list(self) -> None:
        assert extract_content("<h1>T</h1><li>one</li><li>two</li>", ["li"]) == "one\ntwo"

    def test_empty_selector_list_returns_empty_string(self) -> None:
        assert extract_content("<p>text</p>", []) == ""

    def test_blank_selectors_ignored(self) -> None:
        assert extract_content("<p>text</p>", ["", "  ", "p"]) == "text"


class TestEdgeCases:
    def test_empty_html_returns_empty_string(self) -> None:
        assert extract_content("") == ""

    def test_no_matches_returns_empty_string(self) -> None:
        assert extract_content("<html><body><div id='root'></div></body></html>") == ""

    def test_malformed_html_does_not_raise(self) -> None:
        result = extract_content("<p>Unclosed paragraph <h2>Dangling heading</div></span>")

        assert "Dangling heading" in result

    def test_max_chars_truncates(self) -> None:
        html = "<p>" + "x" * 500 + "</p>"

        assert len(extract_content(html, max_chars=100)) == 100

    def test_max_chars_larger_than_content_is_noop(self) -> None:
        assert extract_content("<p>short</p>", max_chars=100) == "short"

    def test_parser_failure_returns_empty_string(self) -> None:
        with patch(
            "url_chat.scraper.content_extractor.BeautifulSoup",
            side_effect=RuntimeError("parser exploded"),
        ):
            assert extract_content("<p>text</p>") == ""
