"""
Factory for creating store instances.
Simple, clean factory with singleton caching.
"""

import logging
from enum import Enum

from .strategies import StoreStrategy, InMemoryStore, SqlStore, RedisStore
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Available store backends"""
    MEMORY = "memory"
    SQL = "sql"
    REDIS = "redis"


class StoreFactory:
    """
    Simple factory for creating store instances.

    Uses Singleton Pattern - one store view per process (execution context).
    Gets configuration from settings (not passed as parameters).
    """

    _instance: StoreStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: StoreBackend) -> StoreStrategy:
        """
        Create or return cached store instance.

        Args:
            backend: Type of store backend (from enum)

        Returns:
            Singleton store instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == StoreBackend.REDIS:
            import redis

            try:
                redis_client = redis.from_url(
                    settings.redis_url,
                    decode_responses=False,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )

                # Test connection immediately
                redis_client.ping()

                cls._instance = RedisStore(redis_client, channel=settings.store_channel)
                logger.info("✅ Redis store initialized")

            except redis.RedisError as e:
                logger.warning("⚠️  Redis connection failed: %s", e)
                logger.warning("⚠️  Falling back to in-memory store")
                cls._instance = InMemoryStore()

        elif backend == StoreBackend.SQL:
            from shortlink_app.database.connection import engine

            cls._instance = SqlStore(engine)
            logger.info("✅ SQL store initialized (%s)", settings.store_sql_url)

        elif backend == StoreBackend.MEMORY:
            cls._instance = InMemoryStore()
            logger.info("✅ In-memory store initialized")

        else:
            raise ValueError(f"Unknown store backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Close and drop the cached instance (for testing)"""
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None
