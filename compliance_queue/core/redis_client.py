from typing import Optional

import redis.asyncio as redis
from redis.asyncio import ConnectionPool

from compliance_queue.core.config import settings
from compliance_queue.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Owns the connection pool for the queue's backing store.

    ``client`` stays ``None`` until :meth:`connect` succeeds; the queue store
    treats a missing client as an unreachable store.
    """

    def __init__(self, url: Optional[str] = None, max_connections: Optional[int] = None):
        self.url = url or settings.REDIS_URL
        self.pool = ConnectionPool.from_url(
            self.url,
            max_connections=max_connections or settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        self.client: Optional[redis.Redis] = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def connect(self):
        """Initialize Redis connection."""
        client = redis.Redis(connection_pool=self.pool)
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise
        self.client = client
        logger.info("Redis connection established")

    async def connect_or_degrade(self) -> bool:
        """
        Connect, but keep going without a client if Redis is down.

        Returns True when connected.
        """
        try:
            await self.connect()
            return True
        except Exception:
            logger.warning("Redis unavailable - queue operations will no-op", redis_url=self.url)
            return False

    async def disconnect(self):
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            self.client = None
        await self.pool.disconnect()
        logger.info("Redis connection closed")

    async def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False
