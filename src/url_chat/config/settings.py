"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
All credentials and tuning knobs are accessed exclusively through this
module; never call ``os.getenv`` directly elsewhere in the codebase.

Usage::

    from url_chat.config.settings import get_settings

    settings = get_settings()
    limit = settings.rate_limit_requests
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from url_chat.scraper.config import DEFAULT_SELECTORS

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Service-wide configuration backed by environment variables and an optional .env file.

    Every field has a development default.  Secrets (Redis password,
    completion API key) should never be committed to version control.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "url-chat"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    allowed_origins: list[str] = ["http://localhost:3000"]
    """Origins permitted by the CORS middleware (the chat UI)."""

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``."""

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, v: str) -> str:
        normalised = v.upper().strip()
        if normalised not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid LOG_LEVEL '{v}'; expected one of {sorted(VALID_LOG_LEVELS)}"
            )
        return normalised

    # ------------------------------------------------------------------
    # Rate limiting (Redis-backed sliding window)
    # ------------------------------------------------------------------

    redis_url: str = "redis://localhost:6379/0"
    """Connection URL of the shared counter store."""

    redis_password: str | None = None
    """Credential for the counter store.  Overrides any password in ``redis_url``."""

    rate_limit_requests: int = 5
    """Maximum admitted requests per caller within the sliding window (N)."""

    rate_limit_window_seconds: int = 10
    """Duration of the sliding window in seconds (W)."""

    rate_limit_store_timeout: float = 10.0
    """Seconds to wait for the counter store before failing the check."""

    rate_limit_fail_open: bool = False
    """Admit requests when the counter store is unreachable.

    Defaults to ``False`` (fail-closed): every admitted request may launch a
    browser and a paid completion call, so an outage must not lift the cap.
    """

    rate_limit_prefix: str = "ratelimit:chat"
    """Namespace prepended to every counter key."""

    trust_forwarded_for: bool = False
    """Use the first ``X-Forwarded-For`` hop as the caller identity.

    Enable only behind a reverse proxy that overwrites the header.
    """

    # ------------------------------------------------------------------
    # Headless browser & extraction
    # ------------------------------------------------------------------

    navigation_timeout: float = 30.0
    """Hard cap (seconds) on navigation plus the network-idle wait."""

    browser_headless: bool = True
    """Launch Chromium without a visible window."""

    content_selectors: list[str] = list(DEFAULT_SELECTORS)
    """CSS selectors whose text is extracted from the rendered page.

    Set ``CONTENT_SELECTORS='["article p"]'`` for the stricter article-only
    variant.
    """

    max_content_chars: int = 100_000
    """Extracted content is truncated to this many characters."""

    # ------------------------------------------------------------------
    # Completion provider (OpenAI-compatible chat completions)
    # ------------------------------------------------------------------

    groq_api_key: str = ""
    """Bearer key for the completion provider."""

    completion_api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    """Chat completions endpoint."""

    completion_model: str = "llama3-8b-8192"
    """Model identifier sent with every completion request."""

    completion_timeout: float = 60.0
    """Seconds to wait for the provider before failing the request."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
