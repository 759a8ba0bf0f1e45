"""Shared pytest fixtures for url-chat tests.

Fixture summary
---------------
fake_redis    : In-memory stand-in for the Redis counter store.
clock         : Controllable wall clock for the rate limiter.
limiter       : RateLimiter(N=5, W=10s) wired to fake_redis and clock.
provider      : Completion provider stub that returns "OK".
fetcher       : Page fetcher stub returning a successful FetchResult.

No live Redis, browser, or completion provider is required by any test.
"""

from __future__ import annotations

import hashlib
import math
import os

import pytest

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set env vars before any application modules are imported so that the
# cached Settings() never reads a developer's .env values.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "REDIS_URL": "redis://localhost:6379/15",
    "GROQ_API_KEY": "test-groq-key",
    "LOG_LEVEL": "INFO",
    "METRICS_ENABLED": "true",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from url_chat.chat.prompt import CompletionRequest  # noqa: E402
from url_chat.config.settings import get_settings  # noqa: E402
from url_chat.core.exceptions import FetchError  # noqa: E402
from url_chat.core.rate_limiter import RateLimiter  # noqa: E402
from url_chat.scraper.playwright_fetcher import (  # noqa: E402
    FetchResult,
    FetchSession,
    FetchState,
)

get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Redis double
# ---------------------------------------------------------------------------


class FakeRedis:
    """In-memory counter store implementing the limiter's Lua contract.

    ``evalsha`` reproduces the sliding-window script: read both counters,
    weight the previous one, and increment the current one only when the
    request is admitted.
    """

    def __init__(self) -> None:
        self.store: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.scripts: dict[str, str] = {}
        self.evalsha_calls = 0
        self.fail_with: Exception | None = None

    async def script_load(self, script: str) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        sha = hashlib.sha1(script.encode()).hexdigest()
        self.scripts[sha] = script
        return sha

    async def evalsha(self, sha: str, numkeys: int, *args: str) -> list[int]:
        if self.fail_with is not None:
            raise self.fail_with
        assert sha in self.scripts, "script was not loaded"
        self.evalsha_calls += 1
        current_key, previous_key = args[:numkeys]
        limit, weight, ttl_ms = int(args[numkeys]), float(args[numkeys + 1]), int(args[numkeys + 2])

        current = self.store.get(current_key, 0)
        weighted = math.ceil(self.store.get(previous_key, 0) * weight)
        if weighted + current >= limit:
            return [0, current, weighted]
        current += 1
        self.store[current_key] = current
        if current == 1:
            self.ttls[current_key] = ttl_ms
        return [1, current, weighted]

    async def ping(self) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        return True


class FakeClock:
    """Wall clock frozen at ``now`` until advanced."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Completion and fetch doubles
# ---------------------------------------------------------------------------


class StubProvider:
    """Completion provider returning a fixed reply and recording requests."""

    def __init__(self, reply: str = "OK", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


class StubFetcher:
    """Page fetcher returning a canned result and recording URLs."""

    def __init__(self, html: str | None = None, error: FetchError | None = None) -> None:
        self.html = html
        self.error = error
        self.urls: list[str] = []

    async def fetch(self, url: str, timeout: float | None = None) -> FetchResult:
        self.urls.append(url)
        return make_fetch_result(url, html=self.html, error=self.error)


def make_fetch_result(
    url: str, html: str | None = None, error: FetchError | None = None
) -> FetchResult:
    """Build a terminal FetchResult the way PageFetcher would."""
    session = FetchSession(url=url)
    session.advance(FetchState.NAVIGATE_PENDING)
    if error is None:
        session.advance(FetchState.LOADED)
        session.advance(FetchState.CLOSED)
        return FetchResult(url=url, session=session, html=html, final_url=url, status_code=200)
    session.advance(FetchState.FAILED)
    return FetchResult(url=url, session=session, error=error)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def clock() -> FakeClock:
    # Start exactly on a window boundary so tests control the weighting.
    return FakeClock(now=1_700_000_000.0)


@pytest.fixture
def limiter(fake_redis: FakeRedis, clock: FakeClock) -> RateLimiter:
    return RateLimiter(
        redis_client=fake_redis,  # type: ignore[arg-type]
        limit=5,
        window_seconds=10,
        timeout=1.0,
        clock=clock,
    )


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider(reply="OK")


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher(html="<p>Article body</p><h2>Section</h2>")
