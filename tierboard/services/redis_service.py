from typing import Any, Awaitable, Callable, Optional
from contextlib import asynccontextmanager
import json
import redis.asyncio as redis
from redis.asyncio.lock import Lock
from datetime import datetime, timezone

from tierboard.config import Config
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


class CircuitBreaker:
    """
    Stops hammering Redis after repeated failures.

    closed: calls allowed. open: failure_threshold consecutive failures,
    calls blocked. half-open: recovery_timeout elapsed, one reconnect is
    tried before calls resume.
    """

    def __init__(self, failure_threshold: int, recovery_timeout: int):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = "closed"

    def call_succeeded(self):
        self.failure_count = 0
        self.state = "closed"

    def call_failed(self):
        self.failure_count += 1
        self.last_failure_time = datetime.now(timezone.utc)
        if self.failure_count >= self.failure_threshold and self.state != "open":
            self.state = "open"
            logger.warning(f"Circuit breaker opened after {self.failure_count} failures")

    def can_attempt(self) -> bool:
        if self.state != "open":
            return True
        if self.last_failure_time is None:
            return False
        elapsed = (datetime.now(timezone.utc) - self.last_failure_time).total_seconds()
        if elapsed >= self.recovery_timeout:
            self.state = "half-open"
            logger.info("Circuit breaker half-open, next call will try to reconnect")
            return True
        return False


class RedisService:
    """
    Redis access for command rate limiting and distributed player locks.

    get/set/increment/ttl degrade quietly: with Redis down they return
    None/False and the caller carries on without throttling. acquire_lock
    raises instead, since a lock that silently does nothing would let two
    processes write the same player.

    Usage:
        >>> await RedisService.initialize()
        >>> await RedisService.set("ratelimit:bulk:123", 1, ttl=60)
        >>> async with RedisService.acquire_lock("tierboard:player:42"):
        ...     ...
    """

    _client: Optional[redis.Redis] = None
    _circuit_breaker: Optional[CircuitBreaker] = None

    @classmethod
    async def initialize(cls) -> None:
        """
        Connect and ping.

        Raises:
            Exception: If Redis cannot be reached
        """
        if cls._client is not None:
            logger.warning("RedisService already initialized")
            return

        cls._circuit_breaker = CircuitBreaker(
            failure_threshold=Config.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            recovery_timeout=Config.CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
        )
        client = redis.from_url(
            Config.REDIS_URL,
            password=Config.REDIS_PASSWORD,
            max_connections=Config.REDIS_MAX_CONNECTIONS,
            decode_responses=Config.REDIS_DECODE_RESPONSES,
            socket_connect_timeout=Config.REDIS_SOCKET_TIMEOUT,
            socket_keepalive=True,
            retry_on_timeout=Config.REDIS_RETRY_ON_TIMEOUT,
        )
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Failed to initialize RedisService: {e}")
            await client.aclose()
            raise

        cls._client = client
        logger.info("RedisService initialized successfully")

    @classmethod
    async def shutdown(cls) -> None:
        if cls._client is None:
            return
        try:
            await cls._client.aclose()
            logger.info("RedisService shutdown successfully")
        except Exception as e:
            logger.error(f"Error during RedisService shutdown: {e}")
        finally:
            cls._client = None

    @classmethod
    def is_available(cls) -> bool:
        return (
            cls._client is not None
            and cls._circuit_breaker is not None
            and cls._circuit_breaker.can_attempt()
        )

    @classmethod
    async def _ready(cls) -> bool:
        if not cls.is_available():
            return False
        if cls._circuit_breaker.state != "half-open":
            return True
        try:
            await cls._client.ping()
        except Exception as e:
            cls._circuit_breaker.call_failed()
            logger.error(f"Redis reconnection failed: {e}")
            return False
        cls._circuit_breaker.call_succeeded()
        logger.info("Redis reconnection successful, circuit breaker closed")
        return True

    @classmethod
    async def _guarded(cls, op: str, key: str, call: Callable[[], Awaitable[Any]], default: Any) -> Any:
        if not await cls._ready():
            return default
        try:
            result = await call()
        except Exception as e:
            cls._circuit_breaker.call_failed()
            logger.error(f"Redis {op} error for key {key}: {e}")
            return default
        cls._circuit_breaker.call_succeeded()
        return result

    @classmethod
    async def get(cls, key: str) -> Optional[Any]:
        """Value for key, JSON-decoded when possible. None if missing or Redis is down."""
        value = await cls._guarded("GET", key, lambda: cls._client.get(key), None)
        if value is None:
            return None
        try:
            return json.loads(value)
        except (TypeError, json.JSONDecodeError):
            return value

    @classmethod
    async def set(cls, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if isinstance(value, (dict, list)):
            value = json.dumps(value)

        async def write():
            if ttl:
                await cls._client.setex(key, ttl, value)
            else:
                await cls._client.set(key, value)
            return True

        return await cls._guarded("SET", key, write, False)

    @classmethod
    async def increment(cls, key: str, amount: int = 1) -> Optional[int]:
        return await cls._guarded("INCR", key, lambda: cls._client.incrby(key, amount), None)

    @classmethod
    async def ttl(cls, key: str) -> Optional[int]:
        return await cls._guarded("TTL", key, lambda: cls._client.ttl(key), None)

    @classmethod
    @asynccontextmanager
    async def acquire_lock(cls, lock_name: str, timeout: int = 5, blocking_timeout: int = 3):
        """
        Hold a Redis lock for the duration of the block.

        Args:
            lock_name: Unique identifier for the lock
            timeout: Lock expiration time (seconds)
            blocking_timeout: Max time to wait for lock (seconds)

        Raises:
            RuntimeError: If Redis is unavailable
            TimeoutError: If the lock is not acquired within blocking_timeout
        """
        if not await cls._ready():
            raise RuntimeError(f"Redis unavailable, cannot acquire lock: {lock_name}")

        lock = Lock(cls._client, lock_name, timeout=timeout, blocking_timeout=blocking_timeout)
        try:
            acquired = await lock.acquire(blocking=True, blocking_timeout=blocking_timeout)
        except Exception as e:
            cls._circuit_breaker.call_failed()
            logger.error(f"Redis LOCK error for {lock_name}: {e}")
            raise
        cls._circuit_breaker.call_succeeded()

        if not acquired:
            raise TimeoutError(f"Failed to acquire lock: {lock_name}")

        try:
            yield lock
        finally:
            try:
                await lock.release()
            except Exception as e:
                logger.error(f"Error releasing lock {lock_name}: {e}")
