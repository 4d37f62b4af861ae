"""
Delivery Guard

Optional Redis fast path for repeated "round finished" deliveries. A
delivery key is written only after the pipeline fully handled it, so a
crash mid-way leaves no key and the redelivery runs normally. The database
stays the source of truth: a missing or unreachable cache only costs the
shortcut, never correctness.
"""

from typing import Optional

import redis.asyncio as redis

from fairway.config import Config
from fairway.utils.logger import setup_logger
from fairway.utils.redis_utils import RedisUtils

logger = setup_logger(__name__)

KEY_PREFIX = "fairway:delivery"


class DeliveryGuard:
    """Remembers fully processed deliveries in Redis"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl: int = None):
        self.redis_client = redis_client
        self.ttl = ttl if ttl is not None else Config.DELIVERY_GUARD_TTL

    @classmethod
    async def connect(cls, redis_url: str = None) -> "DeliveryGuard":
        """Build a guard from configuration; disabled when Redis is unavailable"""
        if not (Config.DELIVERY_GUARD_ENABLED or redis_url):
            return cls()
        client = await RedisUtils.create_redis_client(redis_url)
        if client is None:
            logger.warning("Delivery guard disabled: no usable Redis connection")
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    @staticmethod
    def delivery_key(kind: str, identifier) -> str:
        return f"{KEY_PREFIX}:{kind}:{identifier}"

    async def seen(self, key: str) -> bool:
        """True if this delivery was already handled end to end"""
        if not self.enabled:
            return False
        try:
            return bool(await self.redis_client.exists(key))
        except redis.RedisError as e:
            logger.warning(f"Delivery guard lookup failed for {key}: {e}")
            return False

    async def remember(self, key: str):
        """Mark a delivery as handled; call only after processing succeeded"""
        if not self.enabled:
            return
        try:
            # ttl 0 keeps the key without expiry
            await self.redis_client.set(key, "1", ex=self.ttl or None)
        except redis.RedisError as e:
            logger.warning(f"Delivery guard write failed for {key}: {e}")

    async def close(self):
        """Clean up Redis connection."""
        if self.redis_client is not None:
            await self.redis_client.aclose()
