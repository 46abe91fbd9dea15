from typing import AsyncGenerator, Dict
from contextlib import AsyncExitStack, asynccontextmanager
import asyncio

from tierboard.config import Config
from tierboard.services.redis_service import RedisService
from tierboard.exceptions import StorageError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


class LockService:
    """
    Per-key serialization of player writes.

    Every ledger mutation and its aggregate recompute run under the lock of
    the player they touch, so global_points can never be computed from a
    half-applied ledger. Different players never contend.

    In-process callers share an asyncio.Lock per key. With
    Config.DISTRIBUTED_LOCKS enabled a Redis lock is taken as well, which
    covers several bot processes writing to the same database.

    Usage:
        >>> async with LockService.player_lock(player.id):
        ...     async with DatabaseService.get_transaction() as session:
        ...         ...
    """

    _locks: Dict[str, asyncio.Lock] = {}
    _waiters: Dict[str, int] = {}

    @classmethod
    def reset(cls) -> None:
        cls._locks = {}
        cls._waiters = {}

    @classmethod
    @asynccontextmanager
    async def acquire(cls, key: str) -> AsyncGenerator[None, None]:
        """
        Hold the lock for key for the duration of the block.

        Raises:
            StorageError: The distributed lock could not be taken (Redis
                down, or held elsewhere past LOCK_BLOCKING_TIMEOUT)
        """
        lock = cls._locks.setdefault(key, asyncio.Lock())
        cls._waiters[key] = cls._waiters.get(key, 0) + 1
        try:
            async with AsyncExitStack() as stack:
                await stack.enter_async_context(lock)
                if Config.DISTRIBUTED_LOCKS:
                    try:
                        await stack.enter_async_context(RedisService.acquire_lock(
                            f"tierboard:{key}",
                            timeout=Config.LOCK_TIMEOUT,
                            blocking_timeout=Config.LOCK_BLOCKING_TIMEOUT,
                        ))
                    except Exception as e:
                        logger.error(f"Could not acquire lock {key}: {e}")
                        raise StorageError(f"lock {key}", e) from e
                yield
        finally:
            cls._waiters[key] -= 1
            if cls._waiters[key] == 0:
                del cls._waiters[key]
                cls._locks.pop(key, None)

    @classmethod
    def player_lock(cls, player_id: int):
        return cls.acquire(f"player:{player_id}")

    @classmethod
    def ign_lock(cls, ign: str):
        """Serializes resolve-or-create for one in-game name."""
        return cls.acquire(f"ign:{ign}")

    @classmethod
    def held_keys(cls):
        return tuple(cls._locks)
