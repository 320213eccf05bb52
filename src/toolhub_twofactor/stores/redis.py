"""Redis implementation of the ephemeral code store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from redis.asyncio import Redis

if TYPE_CHECKING:
    from ..keys import EphemeralKey

logger = logging.getLogger(__name__)


class RedisEphemeralCodeStore:
    """
    Redis implementation of IEphemeralCodeStore.

    Expiry is delegated to Redis key TTLs. Connection errors propagate; a
    ``None`` from :meth:`get` always means the key is absent.
    """

    def __init__(
        self,
        redis_client: Redis,  # type: ignore[type-arg]
        prefix: str = "",
    ) -> None:
        self._redis = redis_client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> RedisEphemeralCodeStore:
        """Build a store on a new client, e.g. ``redis://localhost:6379/0``."""
        return cls(Redis.from_url(url), prefix=prefix)

    def _key(self, key: EphemeralKey) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: EphemeralKey) -> str | None:
        value = await self._redis.get(self._key(key))
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    async def set(self, key: EphemeralKey, value: str, ttl: int) -> None:
        await self._redis.set(self._key(key), value, ex=ttl)

    async def add(self, key: EphemeralKey, value: str, ttl: int) -> bool:
        created = await self._redis.set(self._key(key), value, ex=ttl, nx=True)
        if not created:
            logger.debug("Ephemeral key already present: %s", key.namespace)
        return bool(created)

    async def delete(self, key: EphemeralKey) -> None:
        await self._redis.delete(self._key(key))


__all__: list[str] = ["RedisEphemeralCodeStore"]
