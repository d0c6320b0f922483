"""Fixed-window rate limiter over the in-memory cache (outbound push throttle)."""

import logging
import time

from kaibot.core.cache_client import InMemoryCache


logger = logging.getLogger(__name__)


class RateLimiter:
    """Rate limiter using a fixed window counter per (scope, identifier)."""

    def __init__(self, cache: InMemoryCache) -> None:
        self._cache = cache

    async def allow(self, scope: str, identifier: str, limit: int, window_seconds: int = 60) -> bool:
        """Count one call and report whether it is within the limit.

        Args:
            scope: Rate limit scope (e.g. 'line_push')
            identifier: Unique identifier (e.g. a LINE group id)
            limit: Maximum calls allowed per window
            window_seconds: Window length in seconds

        Returns:
            False once the window's count exceeds the limit
        """
        now = int(time.time())
        window_start = now // window_seconds
        key = f"ratelimit:{scope}:{identifier}:{window_start}"

        count = await self._cache.increment(key)
        if count is None:
            logger.warning("rate_limit_check_failed", extra={"scope": scope, "reason": "increment_failed"})
            return True

        if count == 1:
            await self._cache.expire(key, window_seconds)

        if count > limit:
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "scope": scope,
                    "identifier": identifier,
                    "count": count,
                    "limit": limit,
                    "retry_after": window_seconds - (now % window_seconds),
                },
            )
            return False
        return True
