import pickle
import redis.asyncio as redis
from functools import wraps
from uuid import UUID

from src.utils.logger import get_logger
from src.utils.settings.redis import RedisSettings

logger = get_logger(__name__)

_KEY_TYPES = (str, int, float, bool, UUID)


def _generate_cache_key(func, args: tuple, kwargs: dict) -> str:
    """Generate cache key from function name and business parameters only."""
    key_parts = [func.__module__.replace(".", ":"), func.__qualname__.replace(".", ":")]

    # Skip 'self' for instance methods
    start_idx = 1 if args and not isinstance(args[0], _KEY_TYPES) else 0

    # Only include simple types in cache key (skip sessions, stores, etc.)
    for arg in args[start_idx:]:
        if isinstance(arg, _KEY_TYPES):
            safe_arg = str(arg).replace(":", "_").replace("*", "_")
            key_parts.append(safe_arg)

    for k, v in sorted(kwargs.items()):
        if isinstance(v, _KEY_TYPES):
            safe_val = str(v).replace(":", "_").replace("*", "_")
            key_parts.append(f"{k}={safe_val}")

    return "cache:" + ":".join(key_parts)


async def _get_cache(key: str):
    """Get value from Redis cache."""
    try:
        redis_client = redis.from_url(RedisSettings().REDIS_URL, decode_responses=False)
        value = await redis_client.get(key)
        await redis_client.aclose()

        if value is not None:
            return pickle.loads(value)
        return None
    except Exception as e:
        logger.error(f"Failed to get cache key '{key}': {e}")
        return None


async def _set_cache(key: str, value, ttl: int) -> bool:
    """Set value in Redis cache with TTL."""
    try:
        redis_client = redis.from_url(RedisSettings().REDIS_URL, decode_responses=False)
        await redis_client.setex(key, ttl, pickle.dumps(value))
        await redis_client.aclose()
        return True
    except Exception as e:
        logger.error(f"Failed to set cache key '{key}': {e}")
        return False


async def _delete_cache(key: str) -> int:
    try:
        redis_client = redis.from_url(RedisSettings().REDIS_URL, decode_responses=False)
        deleted = await redis_client.delete(key)
        await redis_client.aclose()
        return deleted
    except Exception as e:
        logger.error(f"Failed to delete cache key '{key}': {e}")
        return 0


def cached(ttl: int = 900):
    """Cache decorator with Redis backend."""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            cache_key = _generate_cache_key(func, args, kwargs)

            cached_value = await _get_cache(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache hit: {cache_key}")
                return cached_value

            result = await func(*args, **kwargs)

            await _set_cache(cache_key, result, ttl)
            logger.debug(f"Cached: {cache_key}")
            return result

        return wrapper

    return decorator


async def invalidate_cache(func, *args, **kwargs) -> bool:
    """Invalidate cache entry for a specific function call."""
    cache_key = _generate_cache_key(func, args, kwargs)
    deleted = await _delete_cache(cache_key)
    if deleted:
        logger.info(f"Invalidated cache: {cache_key}")
    return deleted > 0
