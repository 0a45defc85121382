"""
Per-ride and per-user mutual exclusion.

``DistributedLock`` is a Redis lock (SET NX EX to acquire, Lua
compare-and-delete to release) shared by every API process.  The ride
orchestrator takes one around each read-check-write on a ride (accept/join
races) and on a user (rating updates).

``LocalLockProvider`` gives the same guarantee inside a single process with
``asyncio.Lock`` objects and is the default when Redis locking is disabled.
"""

from __future__ import annotations

import asyncio
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis

from rideshare.domain.errors import BusyError
from rideshare.domain.ports import LockProvider

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 30,
        wait_seconds: float = 0.0,
        poll_interval: float = 0.05,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try once to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def acquire_within(self, wait_seconds: float) -> bool:
        """Poll until acquired or *wait_seconds* elapse."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_seconds
        while True:
            if await self.acquire():
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(self.poll_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        acquired = await self.acquire_within(self.wait_seconds)
        if not acquired:
            raise BusyError(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()


class RedisLockProvider(LockProvider):
    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = 30,
        wait_seconds: float = 5.0,
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds

    def _lock(self, key: str) -> DistributedLock:
        return DistributedLock(
            self.client,
            key,
            ttl_seconds=self.ttl_seconds,
            wait_seconds=self.wait_seconds,
        )

    def ride(self, ride_id: int) -> DistributedLock:
        return self._lock(f"ride:{ride_id}")

    def user(self, user_id: int) -> DistributedLock:
        return self._lock(f"user:{user_id}")


class LocalLockProvider(LockProvider):
    """In-process locks keyed by name; unused locks are garbage collected."""

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def _hold(self, key: str) -> AsyncIterator[None]:
        lock = self._get(key)
        async with lock:
            yield

    def ride(self, ride_id: int):
        return self._hold(f"ride:{ride_id}")

    def user(self, user_id: int):
        return self._hold(f"user:{user_id}")
