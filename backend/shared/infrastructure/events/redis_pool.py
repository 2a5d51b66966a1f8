"""
Redis Connection Pool Management.

The session core is synchronous (SQLAlchemy sessions, threadpool routes),
so only a sync connection pool is kept.
"""

from __future__ import annotations

import threading

import redis as redis_sync

from shared.config.settings import settings, REDIS_URL
from shared.config.logging import get_logger

logger = get_logger(__name__)


_redis_sync_pool: redis_sync.ConnectionPool | None = None
_sync_pool_lock = threading.Lock()


def _get_redis_sync_pool() -> redis_sync.ConnectionPool:
    """Get or create the synchronous Redis connection pool."""
    global _redis_sync_pool
    if _redis_sync_pool is None:
        with _sync_pool_lock:
            if _redis_sync_pool is None:
                _redis_sync_pool = redis_sync.ConnectionPool.from_url(
                    REDIS_URL,
                    max_connections=settings.redis_sync_pool_max_connections,
                    decode_responses=True,
                    socket_connect_timeout=settings.redis_socket_timeout,
                    socket_timeout=settings.redis_socket_timeout,
                    health_check_interval=30,
                )
                logger.info(
                    "Redis sync pool initialized",
                    max_connections=settings.redis_sync_pool_max_connections,
                    timeout=settings.redis_socket_timeout,
                )
    return _redis_sync_pool


def get_redis_sync_client() -> redis_sync.Redis:
    """
    Get a Redis client backed by the shared sync pool.

    Each call returns a new lightweight client; connections come from the pool.
    """
    return redis_sync.Redis(connection_pool=_get_redis_sync_pool())


def close_redis_sync_pool() -> None:
    """Close the sync Redis pool on application shutdown."""
    global _redis_sync_pool
    with _sync_pool_lock:
        if _redis_sync_pool is not None:
            try:
                _redis_sync_pool.disconnect()
                logger.info("Redis sync pool closed")
            except redis_sync.RedisError as e:
                logger.warning("Error closing Redis sync pool", error=str(e))
            finally:
                _redis_sync_pool = None
