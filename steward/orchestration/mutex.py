"""Per-task evaluation locks.

At most one evaluation may be in flight per task. Different tasks never
contend: locks are keyed by task id, there is no global lock.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import LockError

from steward.observability.logging import get_logger

logger = get_logger(__name__)


class TaskMutex(ABC):
    """Single-writer lock keyed by task id."""

    @abstractmethod
    def acquire(
        self,
        task_id: UUID,
        blocking_timeout: float | None = None,
    ) -> AbstractAsyncContextManager[bool]:
        """Acquire the lock for a task.

        Used as ``async with mutex.acquire(task_id) as acquired``; yields
        False when the lock could not be taken within the blocking timeout.
        """

    @abstractmethod
    async def is_locked(self, task_id: UUID) -> bool:
        """Check if a task is currently locked."""


class InProcessTaskMutex(TaskMutex):
    """asyncio locks for a single worker process.

    Lock objects are dropped once no coroutine holds or waits on them.
    """

    def __init__(self, blocking_timeout: float = 10.0) -> None:
        self._blocking_timeout = blocking_timeout
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._waiters: dict[UUID, int] = {}

    @asynccontextmanager
    async def acquire(
        self,
        task_id: UUID,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[bool, None]:
        timeout = blocking_timeout or self._blocking_timeout
        lock = self._locks.setdefault(task_id, asyncio.Lock())
        self._waiters[task_id] = self._waiters.get(task_id, 0) + 1

        acquired = False
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
                acquired = True
            except TimeoutError:
                logger.warning("task_lock_timeout", task_id=str(task_id), timeout=timeout)
            yield acquired
        finally:
            if acquired:
                lock.release()
            self._waiters[task_id] -= 1
            if self._waiters[task_id] == 0:
                del self._waiters[task_id]
                self._locks.pop(task_id, None)

    async def is_locked(self, task_id: UUID) -> bool:
        lock = self._locks.get(task_id)
        return lock is not None and lock.locked()


class RedisTaskMutex(TaskMutex):
    """Redis-backed distributed lock for several worker processes.

    Lock key format: tasklock:{task_id}
    """

    def __init__(
        self,
        redis: Redis,
        lock_timeout: int = 60,
        blocking_timeout: float = 10.0,
    ) -> None:
        """Initialize task mutex.

        Args:
            redis: Redis client instance
            lock_timeout: How long lock is held before auto-release (seconds)
            blocking_timeout: How long to wait when trying to acquire (seconds)
        """
        self._redis = redis
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, task_id: UUID) -> str:
        return f"tasklock:{task_id}"

    @asynccontextmanager
    async def acquire(
        self,
        task_id: UUID,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[bool, None]:
        timeout = blocking_timeout or self._blocking_timeout

        lock = self._redis.lock(
            self._key(task_id),
            timeout=self._lock_timeout,
            blocking_timeout=timeout,
        )

        acquired = await lock.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError:
                    # Expired while held
                    logger.warning("task_lock_expired", task_id=str(task_id))

    async def is_locked(self, task_id: UUID) -> bool:
        return await self._redis.exists(self._key(task_id)) > 0

    async def force_release(self, task_id: UUID) -> bool:
        """Force release a lock left behind by a crashed worker.

        Returns:
            True if lock was released, False if it didn't exist
        """
        return await self._redis.delete(self._key(task_id)) > 0
