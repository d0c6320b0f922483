"""Tests for the in-memory TTL cache and the fixed-window rate limiter."""

from unittest.mock import AsyncMock, patch

import pytest

from kaibot.core.cache_client import InMemoryCache
from kaibot.core.rate_limiter import RateLimiter


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.mark.unit
class TestInMemoryCache:
    """Basic operations and expiry."""

    @pytest.mark.asyncio
    async def test_set_get_clear(self, cache):
        await cache.set("templates:C1", "[]", 60)
        assert await cache.get("templates:C1") == "[]"

        await cache.clear()
        assert await cache.get("templates:C1") is None

    @pytest.mark.asyncio
    async def test_expired_entry_dropped(self, cache):
        with patch("kaibot.core.cache_client.time.time", return_value=1000.0):
            await cache.set("k", "v", 10)
        with patch("kaibot.core.cache_client.time.time", return_value=1011.0):
            assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self, cache):
        with patch("kaibot.core.cache_client.time.time", return_value=1000.0):
            await cache.set("k", "v", 0)
        with patch("kaibot.core.cache_client.time.time", return_value=10_000_000.0):
            assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_increment(self, cache):
        assert await cache.increment("n") == 1
        assert await cache.increment("n") == 2
        await cache.set("s", "text", 60)
        assert await cache.increment("s") is None

    @pytest.mark.asyncio
    async def test_increment_keeps_expiry(self, cache):
        with patch("kaibot.core.cache_client.time.time", return_value=1000.0):
            await cache.increment("n")
            assert await cache.expire("n", 60) is True
            await cache.increment("n")
        with patch("kaibot.core.cache_client.time.time", return_value=1061.0):
            assert await cache.get("n") is None

    @pytest.mark.asyncio
    async def test_expire_missing_key(self, cache):
        assert await cache.expire("missing", 10) is False


@pytest.mark.unit
class TestRateLimiter:
    """Fixed-window counting."""

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, cache):
        limiter = RateLimiter(cache)

        results = [await limiter.allow("line_push", "C1", limit=3) for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_identifiers_counted_separately(self, cache):
        limiter = RateLimiter(cache)
        assert await limiter.allow("line_push", "C1", limit=1) is True
        assert await limiter.allow("line_push", "C2", limit=1) is True
        assert await limiter.allow("line_push", "C1", limit=1) is False

    @pytest.mark.asyncio
    async def test_first_call_sets_window_expiry(self):
        mock_cache = AsyncMock()
        mock_cache.increment.return_value = 1

        await RateLimiter(mock_cache).allow("line_push", "C1", limit=5, window_seconds=60)

        mock_cache.expire.assert_awaited_once()
        assert mock_cache.expire.await_args.args[1] == 60

    @pytest.mark.asyncio
    async def test_fails_open_when_counter_unusable(self):
        mock_cache = AsyncMock()
        mock_cache.increment.return_value = None

        assert await RateLimiter(mock_cache).allow("line_push", "C1", limit=0) is True
