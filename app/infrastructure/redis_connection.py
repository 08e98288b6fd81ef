# app/infrastructure/redis_connection.py

import redis.asyncio as aioredis
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


class RedisConnection:
    """
    Holds the Redis client backing the chat room membership table

    REDIS_URL wins over the individual REDIS_* settings when both are set.
    """

    def __init__(self):
        self.client: aioredis.Redis | None = None

    @staticmethod
    def _build_client() -> aioredis.Redis:
        options = {
            "decode_responses": settings.REDIS_DECODE_RESPONSES,
            "socket_timeout": settings.REDIS_SOCKET_TIMEOUT,
            "health_check_interval": 30,
        }
        if settings.REDIS_URL:
            return aioredis.from_url(settings.REDIS_URL, **options)
        return aioredis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            **options
        )

    async def connect(self):
        if self.client is not None:
            return

        client = self._build_client()
        try:
            await client.ping()
        except aioredis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await client.aclose()
            raise
        self.client = client
        logger.info(f"Connected to Redis ({settings.REDIS_URL or f'{settings.REDIS_HOST}:{settings.REDIS_PORT}'})")

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Disconnected from Redis")

    async def is_healthy(self) -> bool:
        """True when connected and Redis answers a PING"""
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except aioredis.RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_client(self) -> aioredis.Redis:
        if not self.client:
            raise RuntimeError("Redis client is not connected. Call connect() first.")
        return self.client


# Shared instance
redis_connection = RedisConnection()


def get_redis() -> aioredis.Redis:
    """Resolve the current Redis client; passed to RoomBroadcaster as its accessor"""
    return redis_connection.get_client()
