"""Per-(user, method) locking.

Verification is a read-compare-write sequence over the record's counters and
the delivered code. Two concurrent submissions for the same (user, method)
must not both consume one code or both slip under the lockout threshold, so
each sequence runs while holding the lock for that pair. Different users or
different methods never contend.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from .methods import TwoFactorMethod
    from .ports import ILockStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceIdentifier:
    """
    Identifies a single lockable resource.

    Examples:
        >>> ResourceIdentifier("two_factor", "user-1:mailbox")
    """

    resource_type: str
    resource_id: str

    def __str__(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"


def record_resource(user_id: str, method: TwoFactorMethod) -> ResourceIdentifier:
    return ResourceIdentifier("two_factor", f"{user_id}:{method.value}")


@dataclass
class _HeldLock:
    lock: asyncio.Lock
    token: str | None = None
    waiters: int = 0


class InMemoryLockStrategy:
    """
    Single-process lock strategy backed by one ``asyncio.Lock`` per resource.

    Entries are dropped once nobody holds or waits for them. Useful for tests
    and single-worker deployments.
    """

    def __init__(self) -> None:
        self._locks: dict[str, _HeldLock] = {}
        self._guard = asyncio.Lock()

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 5.0,
        ttl: float = 15.0,  # noqa: ARG002
    ) -> str:
        key = str(resource)
        async with self._guard:
            state = self._locks.setdefault(key, _HeldLock(asyncio.Lock()))
            state.waiters += 1

        try:
            await asyncio.wait_for(state.lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Lock acquisition timed out after %.1fs: %s", timeout, key)
            raise LockAcquisitionError(key, timeout) from None
        finally:
            async with self._guard:
                state.waiters -= 1

        state.token = str(uuid.uuid4())
        logger.debug("Lock acquired: %s", key)
        return state.token

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        key = str(resource)
        async with self._guard:
            state = self._locks.get(key)
            if state is None or state.token != token:
                logger.warning("Attempted to release invalid or expired lock: %s", key)
                return

            state.token = None
            state.lock.release()
            if state.waiters == 0 and not state.lock.locked():
                self._locks.pop(key, None)
        logger.debug("Lock released: %s", key)

    def is_held(self, resource: ResourceIdentifier) -> bool:
        state = self._locks.get(str(resource))
        return state is not None and state.lock.locked()


# Deletes the key only if it still carries our token, so a lock that expired
# and was re-acquired by another worker is never released by us.
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


class RedisLockStrategy:
    """
    Redis lock strategy for multi-worker deployments.

    Acquisition is ``SET key token NX PX ttl`` polled until ``timeout``;
    the TTL bounds how long a crashed worker can block a (user, method).
    Designed for a single Redis instance.
    """

    def __init__(
        self,
        redis: Redis,  # type: ignore[type-arg]
        prefix: str = "lock",
        retry_interval: float = 0.05,
    ) -> None:
        """
        Initialize RedisLockStrategy.

        Args:
            redis: An initialized redis.asyncio.Redis client.
            prefix: Key prefix for Redis keys.
            retry_interval: Delay between acquisition attempts.
        """
        self._redis = redis
        self._prefix = prefix
        self._retry_interval = retry_interval

    def _lock_key(self, resource: ResourceIdentifier) -> str:
        return f"{self._prefix}:{resource.resource_type}:{resource.resource_id}"

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 5.0,
        ttl: float = 15.0,
    ) -> str:
        lock_key = self._lock_key(resource)
        token = str(uuid.uuid4())
        ttl_ms = int(ttl * 1000)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if await self._redis.set(lock_key, token, nx=True, px=ttl_ms):
                logger.debug("Redis lock acquired: %s", lock_key)
                return token
            if loop.time() >= deadline:
                raise LockAcquisitionError(
                    str(resource), timeout, reason="Redis lock is held elsewhere"
                )
            await asyncio.sleep(self._retry_interval)

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        lock_key = self._lock_key(resource)
        released = await self._redis.eval(_RELEASE_SCRIPT, 1, lock_key, token)
        if not released:
            logger.warning("Redis lock already expired or stolen: %s", lock_key)


@asynccontextmanager
async def hold(
    strategy: ILockStrategy,
    resource: ResourceIdentifier,
    *,
    timeout: float = 5.0,
    ttl: float = 15.0,
) -> AsyncIterator[None]:
    """Hold ``resource`` for the duration of the ``async with`` block."""
    token = await strategy.acquire(resource, timeout=timeout, ttl=ttl)
    try:
        yield
    finally:
        await strategy.release(resource, token)


__all__: list[str] = [
    "ResourceIdentifier",
    "record_resource",
    "InMemoryLockStrategy",
    "RedisLockStrategy",
    "hold",
]
