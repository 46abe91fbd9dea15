from typing import Callable
from functools import wraps
from discord.ext import commands

from tierboard.config import Config
from tierboard.services.redis_service import RedisService
from tierboard.exceptions import RateLimitError
from tierboard.services.logger import get_logger

logger = get_logger(__name__)


def ratelimit(uses: int, per_seconds: int, command_name: str):
    """
    Rate limit decorator for cog commands.

    Counts uses per Discord user in Redis. When Redis is unavailable the
    command runs unthrottled.

    Args:
        uses: Number of uses allowed per time window
        per_seconds: Time window in seconds
        command_name: Name of the command (for logging and key generation)

    Raises:
        RateLimitError: If user exceeds rate limit

    Example:
        >>> @commands.hybrid_command(name="bulk")
        >>> @ratelimit(uses=3, per_seconds=60, command_name="bulk")
        >>> async def bulk(self, ctx: commands.Context, *, text: str):
        ...     # At most 3 batches per minute per admin
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self, ctx: commands.Context, *args, **kwargs):
            if not Config.RATE_LIMIT_ENABLED or not RedisService.is_available():
                return await func(self, ctx, *args, **kwargs)

            key = f"ratelimit:{command_name}:{ctx.author.id}"
            current = await RedisService.get(key)

            if current is not None and int(current) >= uses:
                ttl = await RedisService.ttl(key)
                raise RateLimitError(
                    command=command_name,
                    retry_after=float(ttl) if ttl and ttl > 0 else float(per_seconds)
                )

            if current is None:
                await RedisService.set(key, 1, ttl=per_seconds)
            else:
                await RedisService.increment(key)

            return await func(self, ctx, *args, **kwargs)

        return wrapper
    return decorator
