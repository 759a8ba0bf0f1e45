"""Page fetch-and-extract service.

Turns a URL found in a chat message into plain text for the prompt.

Sub-modules:
- ``config``            : selectors, network-idle thresholds, user agent
- ``url_extractor``     : first-URL detection in free text
- ``playwright_fetcher``: isolated headless Chromium fetch per request
- ``content_extractor`` : BeautifulSoup selector-based text extraction
"""
