"""
Redis Session Backend

Persists each device's identity slots as one Redis hash:

    <prefix>:<device_id>  →  {userId, username, phone}

HSET with a mapping replaces the group in a single command, and the hash
is deleted and rewritten inside one MULTI/EXEC pipeline so a reader never
sees slots from two different identities.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from plattr.core.config import get_settings
from plattr.core.exceptions import StoreError
from plattr.services.session.base import BaseSessionBackend

logger = logging.getLogger(__name__)


class RedisSessionBackend(BaseSessionBackend):
    """
    Production session backend.

    Example:
        >>> backend = RedisSessionBackend()
        >>> await backend.set("device-1", {"userId": "u1", "username": "asha", "phone": ""})
    """

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        key_prefix: Optional[str] = None,
    ):
        settings = get_settings()
        self._client = client or aioredis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
        self._prefix = key_prefix or settings.session_key_prefix
        logger.info(f"RedisSessionBackend initialized (prefix={self._prefix})")

    @property
    def provider_name(self) -> str:
        return "redis"

    def _key(self, device_id: str) -> str:
        return f"{self._prefix}:{device_id}"

    async def get(self, device_id: str) -> dict[str, str]:
        try:
            return await self._client.hgetall(self._key(device_id)) or {}
        except RedisError as e:
            logger.error(f"Redis: session read failed for {device_id} - {e}")
            raise StoreError("Session storage unavailable") from e

    async def set(self, device_id: str, slots: dict[str, str]) -> None:
        key = self._key(device_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=slots)
                await pipe.execute()
        except RedisError as e:
            logger.error(f"Redis: session write failed for {device_id} - {e}")
            raise StoreError("Session storage unavailable") from e

    async def clear(self, device_id: str) -> None:
        try:
            await self._client.delete(self._key(device_id))
        except RedisError as e:
            logger.error(f"Redis: session clear failed for {device_id} - {e}")
            raise StoreError("Session storage unavailable") from e

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis: Health check failed - {e}")
            return False
