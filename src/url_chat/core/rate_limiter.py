"""Redis-backed sliding window rate limiter for chat requests.

Implements the sliding window *counter* algorithm: each key owns one integer
counter per fixed sub-window of length ``W``.  A request arriving at time
``t`` inside the current sub-window is judged against::

    ceil(previous_count * (1 - elapsed / W)) + current_count

i.e. the previous sub-window's count weighted by the share of it that still
lies inside the trailing ``W`` seconds.  This costs two keys and O(1) work
per check instead of a timestamp log per key.

The read-compare-increment sequence runs as one Lua script so that
concurrent handlers, and several service instances sharing one Redis,
observe a consistent count.  A denied request does not increment the
counter.

Typical usage::

    redis_client = create_redis_client(settings)
    limiter = RateLimiter(redis_client, limit=5, window_seconds=10)

    decision = await limiter.check("203.0.113.7")
    if not decision.allowed:
        ...
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable

import redis.asyncio as aioredis

from url_chat.core.exceptions import RateLimitStoreUnavailableError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lua script
# ---------------------------------------------------------------------------

# Atomic sliding-window check-and-increment.
#
# KEYS[1]  counter for the current fixed sub-window
# KEYS[2]  counter for the previous fixed sub-window
# ARGV[1]  maximum requests allowed in the sliding window
# ARGV[2]  weight applied to the previous count (0.0 to 1.0)
# ARGV[3]  TTL for the current counter in milliseconds
#
# Returns {admitted (1/0), current_count, weighted_previous_count}.
_LUA_SLIDING_WINDOW = """
local current_key  = KEYS[1]
local previous_key = KEYS[2]
local limit        = tonumber(ARGV[1])
local weight       = tonumber(ARGV[2])
local ttl_ms       = tonumber(ARGV[3])

local current  = tonumber(redis.call('GET', current_key) or '0')
local previous = tonumber(redis.call('GET', previous_key) or '0')
local weighted = math.ceil(previous * weight)

if weighted + current >= limit then
    return {0, current, weighted}
end

current = redis.call('INCR', current_key)
if current == 1 then
    redis.call('PEXPIRE', current_key, ttl_ms)
end
return {1, current, weighted}
"""


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admission check.  Never mutated after creation.

    Attributes:
        allowed: Whether the request was admitted (and counted).
        limit: The configured maximum per window.
        remaining: Requests still admissible right now, never negative.
        reset_at: End of the current fixed sub-window (UTC).  Always within
            ``[now, now + window]``.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def retry_after(self, now: float | None = None) -> int:
        """Whole seconds until :attr:`reset_at`, at least 1 when denied."""
        now = time.time() if now is None else now
        seconds = math.ceil(self.reset_at.timestamp() - now)
        return max(seconds, 1 if not self.allowed else 0)


# ---------------------------------------------------------------------------
# RateLimiter
# ---------------------------------------------------------------------------


@dataclass
class RateLimiter:
    """Sliding-window admission control shared through Redis.

    Keys are laid out as::

        {prefix}:{caller_key}:{window_index}

    where *window_index* is ``floor(now / window_seconds)``.

    Attributes:
        redis_client: An initialised ``redis.asyncio.Redis`` connection.
        limit: Maximum admitted requests per sliding window (N).
        window_seconds: Sliding window duration (W).
        timeout: Seconds allowed for each store round trip.
        prefix: Key namespace.
        clock: Wall-clock source in seconds; injectable for tests.
    """

    redis_client: aioredis.Redis
    limit: int = 5
    window_seconds: int = 10
    timeout: float = 10.0
    prefix: str = "ratelimit:chat"
    clock: Callable[[], float] = time.time
    _sha: str = field(default="", init=False, repr=False)

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _key(self, caller_key: str, window_index: int) -> str:
        return f"{self.prefix}:{caller_key}:{window_index}"

    async def _ensure_script_loaded(self) -> str:
        """Upload the Lua script to Redis and cache its SHA1 hash.

        Called lazily on the first check so that the Redis connection is not
        required at construction time.
        """
        if not self._sha:
            self._sha = await self.redis_client.script_load(_LUA_SLIDING_WINDOW)
        return self._sha

    async def _evaluate(
        self, current_key: str, previous_key: str, weight: float
    ) -> tuple[int, int, int]:
        sha = await self._ensure_script_loaded()
        ttl_ms = self.window_seconds * 2 * 1000 + 1000
        result = await self.redis_client.evalsha(  # type: ignore[attr-defined]
            sha,
            2,
            current_key,
            previous_key,
            str(self.limit),
            repr(weight),
            str(ttl_ms),
        )
        admitted, current, weighted = (int(v) for v in result)
        return admitted, current, weighted

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check(self, key: str) -> RateLimitDecision:
        """Admit or deny one request for *key*, counting it when admitted.

        Args:
            key: Caller identity (client address or API key).

        Returns:
            The :class:`RateLimitDecision` for this request.

        Raises:
            RateLimitStoreUnavailableError: If Redis does not answer within
                :attr:`timeout` or returns an error.  The limiter never
                guesses an answer on store failure.
        """
        now = self.clock()
        window_index = int(now // self.window_seconds)
        elapsed = now - window_index * self.window_seconds
        weight = max(0.0, 1.0 - elapsed / self.window_seconds)
        reset_at = datetime.fromtimestamp(
            (window_index + 1) * self.window_seconds, tz=UTC
        )

        try:
            admitted, current, weighted = await asyncio.wait_for(
                self._evaluate(
                    self._key(key, window_index),
                    self._key(key, window_index - 1),
                    weight,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Rate-limit store timed out", extra={"key": key})
            raise RateLimitStoreUnavailableError(key, self.timeout, "timed out") from exc
        except Exception as exc:
            # NOSCRIPT after a Redis restart or failover: the cache is stale.
            self._sha = ""
            logger.error(
                "Rate-limit store error: %s", exc, extra={"key": key}
            )
            raise RateLimitStoreUnavailableError(key, self.timeout, str(exc)) from exc

        decision = RateLimitDecision(
            allowed=bool(admitted),
            limit=self.limit,
            remaining=max(0, self.limit - (current + weighted)),
            reset_at=reset_at,
        )
        logger.debug(
            "Rate-limit check",
            extra={
                "key": key,
                "allowed": decision.allowed,
                "remaining": decision.remaining,
            },
        )
        return decision


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_redis_client(
    url: str,
    *,
    password: str | None = None,
    timeout: float = 10.0,
) -> aioredis.Redis:
    """Create an async Redis client for the counter store.

    The connection is opened lazily on first use.  Socket timeouts match
    the limiter's store timeout so a dead connection fails the check
    instead of hanging.

    Args:
        url: Redis connection URL.
        password: Optional credential; overrides any password in *url*.
        timeout: Connect and read timeout in seconds.

    Returns:
        An unconnected :class:`redis.asyncio.Redis` instance.
    """
    kwargs: dict[str, object] = {
        "encoding": "utf-8",
        "decode_responses": True,
        "socket_connect_timeout": timeout,
        "socket_timeout": timeout,
    }
    if password:
        kwargs["password"] = password
    return aioredis.from_url(url, **kwargs)
