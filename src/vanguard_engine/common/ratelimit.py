"""Fixed-window rate limiting on top of the shared cache.

Uses INCR with an expiry set on the first hit of each window. When the cache
is unavailable the counter reads as zero and requests are allowed.
"""

from dataclasses import dataclass

from vanguard_engine.common.cache import Cache
from vanguard_engine.common.exceptions import RateLimitedError
from vanguard_engine.common.logging import get_logger

logger = get_logger("ratelimit")


@dataclass
class RateLimitResult:
    allowed: bool
    current_count: int = 0
    limit: int = 0
    retry_after_seconds: int | None = None


class RateLimiter:
    """Per-caller quota: ``limit`` hits per ``window_seconds``."""

    KEY_PREFIX = "rate"

    def __init__(self, cache: Cache, scope: str, limit: int, window_seconds: int):
        self.cache = cache
        self.scope = scope
        self.limit = limit
        self.window_seconds = window_seconds

    async def check(self, caller: str) -> RateLimitResult:
        key = f"{self.KEY_PREFIX}:{self.scope}:{caller}"
        count = await self.cache.incr(key, self.window_seconds)
        if count > self.limit:
            logger.warning(f"Rate limit exceeded for {self.scope} by {caller}")
            return RateLimitResult(
                allowed=False,
                current_count=count,
                limit=self.limit,
                retry_after_seconds=self.window_seconds,
            )
        return RateLimitResult(allowed=True, current_count=count, limit=self.limit)

    async def hit(self, caller: str) -> None:
        """Count a request and raise RateLimitedError once over quota."""
        result = await self.check(caller)
        if not result.allowed:
            raise RateLimitedError(retry_after=result.retry_after_seconds or 0)
