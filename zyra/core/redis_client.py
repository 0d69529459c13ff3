# zyra/core/redis_client.py
import redis.asyncio as redis
from zyra.core.config import settings

class RedisClient:
    _client: redis.Redis | None = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._client is None:
            cls._client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls._client

    @classmethod
    async def close_client(cls) -> None:
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None


def get_redis_client() -> redis.Redis:
    return RedisClient.get_client()
