"""Best-effort Redis cache in front of the durable alert cooldown state."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "memecoin:cooldown"


class CooldownCache:
    """Short-lived `SET NX EX` keys per (mint, alert type).

    The `alert_state` table stays authoritative; a Redis failure only
    costs a datastore round trip and is logged.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self._redis = redis
        self._key_prefix = key_prefix

    def _key(self, mint: str, alert_type: str) -> str:
        return f"{self._key_prefix}:{alert_type}:{mint}"

    async def is_cooling(self, mint: str, alert_type: str) -> bool:
        try:
            return bool(await self._redis.exists(self._key(mint, alert_type)))
        except RedisError as e:
            logger.warning("Cooldown cache read failed for %s/%s: %s", mint, alert_type, e)
            return False

    async def start(self, mint: str, alert_type: str, *, ttl_seconds: int) -> bool:
        """Set the cooldown key if absent; returns True when this call set it."""
        if ttl_seconds <= 0:
            return False
        try:
            was_set = await self._redis.set(
                self._key(mint, alert_type),
                datetime.now(UTC).isoformat(),
                nx=True,
                ex=ttl_seconds,
            )
        except RedisError as e:
            logger.warning("Cooldown cache write failed for %s/%s: %s", mint, alert_type, e)
            return False
        return bool(was_set)

    async def clear(self, mint: str, alert_type: str) -> bool:
        deleted = await self._redis.delete(self._key(mint, alert_type))
        return int(deleted) > 0
