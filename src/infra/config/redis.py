import redis.asyncio as redis
from functools import lru_cache
from src.infra.config.settings import settings

@lru_cache()
def get_redis_pool():
    """Get Redis connection pool (cached)"""
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS
    )

def create_redis_client() -> redis.Redis:
    """Create a Redis client bound to the shared pool without connecting"""
    return redis.Redis(connection_pool=get_redis_pool())
