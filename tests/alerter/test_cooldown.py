"""Tests for the Redis cooldown cache."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from memecoin_risk_engine.alerter.cooldown import CooldownCache

MINT = "CoolMint"


@pytest.fixture
def redis() -> MagicMock:
    client = MagicMock()
    client.exists = AsyncMock(return_value=0)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    return client


class TestCooldownCache:
    @pytest.mark.asyncio
    async def test_is_cooling(self, redis: MagicMock) -> None:
        cache = CooldownCache(redis)
        assert await cache.is_cooling(MINT, "risk") is False

        redis.exists.return_value = 1
        assert await cache.is_cooling(MINT, "risk") is True
        redis.exists.assert_awaited_with("memecoin:cooldown:risk:CoolMint")

    @pytest.mark.asyncio
    async def test_read_failure_is_not_cooling(self, redis: MagicMock) -> None:
        redis.exists.side_effect = RedisError("connection refused")
        assert await CooldownCache(redis).is_cooling(MINT, "risk") is False

    @pytest.mark.asyncio
    async def test_start_sets_key_once(self, redis: MagicMock) -> None:
        cache = CooldownCache(redis, key_prefix="test")
        assert await cache.start(MINT, "launch", ttl_seconds=1200) is True

        args, kwargs = redis.set.call_args
        assert args[0] == "test:launch:CoolMint"
        assert kwargs == {"nx": True, "ex": 1200}

        redis.set.return_value = None
        assert await cache.start(MINT, "launch", ttl_seconds=1200) is False

    @pytest.mark.asyncio
    async def test_start_without_ttl(self, redis: MagicMock) -> None:
        assert await CooldownCache(redis).start(MINT, "risk", ttl_seconds=0) is False
        redis.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure(self, redis: MagicMock) -> None:
        redis.set.side_effect = RedisError("read only replica")
        assert await CooldownCache(redis).start(MINT, "risk", ttl_seconds=60) is False

    @pytest.mark.asyncio
    async def test_clear(self, redis: MagicMock) -> None:
        cache = CooldownCache(redis)
        assert await cache.clear(MINT, "risk") is True
        redis.delete.return_value = 0
        assert await cache.clear(MINT, "risk") is False
