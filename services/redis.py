from redis.asyncio import Redis
from typing import Optional
import logging

logger = logging.getLogger(__name__)

class RedisService:
    def __init__(self, redis_url: str, max_connections: int = 20):
        self.redis: Optional[Redis] = None
        self.redis_url = redis_url
        self.max_connections = max_connections

    async def init(self, verify: bool = True):
        """
        Initialize Redis connection.

        With verify=False the client is created without a ping, so an unreachable
        server only surfaces on the first command.
        """
        if not self.redis:
            try:
                self.redis = Redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    max_connections=self.max_connections
                )
                if verify:
                    await self.redis.ping()
            except Exception as e:
                logger.error(f"Failed to initialize Redis: {str(e)}")
                if self.redis:
                    await self.redis.close()
                    self.redis = None
                raise

    async def close(self):
        """Close Redis connection safely"""
        if self.redis:
            try:
                await self.redis.close()
            except Exception as e:
                logger.error(f"Error closing Redis connection: {str(e)}")
            finally:
                self.redis = None
