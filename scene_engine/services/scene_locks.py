"""
Keyed single-writer locks.

At most one task (or, with Redis, one process) generates a given
(story id, scene number) at a time. Waiters re-check the cache after they
get the lock, so a finished generation is never repeated.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

import redis.asyncio as redis
from redis.exceptions import LockError

logger = logging.getLogger("scene_engine.locks")


class SceneLockManager(ABC):
    """Hands out one mutual-exclusion region per scene key."""

    @abstractmethod
    def hold(self, story_id: str, scene_number: int):
        """Async context manager; yields True when the lock is actually held."""
        pass


class InProcessSceneLocks(SceneLockManager):
    """One asyncio.Lock per key, dropped once nobody holds or awaits it."""

    def __init__(self):
        self._locks: Dict[Tuple[str, int], asyncio.Lock] = {}
        self._users: Dict[Tuple[str, int], int] = {}

    def active_keys(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, story_id: str, scene_number: int) -> AsyncIterator[bool]:
        key = (story_id, scene_number)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield True
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RedisSceneLocks(SceneLockManager):
    """
    Redis lock per key, shared by every process using the same Redis.

    The lock expires after ``lock_timeout`` so a crashed writer cannot wedge a
    key. A waiter that gives up after ``wait_timeout`` proceeds unlocked and
    relies on the store's write-once put.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "scene-engine",
        lock_timeout: float = 300,
        wait_timeout: float = 330,
    ):
        self.client = client
        self.key_prefix = key_prefix
        self.lock_timeout = lock_timeout
        self.wait_timeout = wait_timeout

    def lock_key(self, story_id: str, scene_number: int) -> str:
        return f"{self.key_prefix}:lock:{story_id}:{scene_number}"

    @asynccontextmanager
    async def hold(self, story_id: str, scene_number: int) -> AsyncIterator[bool]:
        lock = self.client.lock(
            self.lock_key(story_id, scene_number),
            timeout=self.lock_timeout,
            blocking_timeout=self.wait_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning(
                f"[hold] Timed out waiting for lock on {story_id}#{scene_number}; continuing unlocked"
            )
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError as e:
                    # Expired while generating; another writer may already hold it
                    logger.warning(f"[hold] Lock for {story_id}#{scene_number} was lost: {e}")
