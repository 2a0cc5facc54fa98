"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API, satisfies KeyValueStore)
        ├── ConnectionManager (Connection lifecycle, retried connect)
        ├── OperationExecutor (GET/SET/DEL/SCAN with error handling)
        └── HealthMonitor (Health checks and pool metrics)

The cache layer only consumes get / set-with-TTL / delete / keys-by-pattern.
Every failure is raised as a CacheError subclass; the read-through cache turns
those into misses.
"""

import asyncio
import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.exceptions import CacheConnectionError, CacheKeyError
from storefront_cache.core.logging.logger import get_logger
from storefront_cache.core.resilience.circuit_breaker import create_retry_decorator

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle and pooling
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Pool Configuration:
    - Max connections: REDIS_MAX_CONNECTIONS
    - Socket timeouts: REDIS_SOCKET_TIMEOUT / REDIS_SOCKET_CONNECT_TIMEOUT
    - Health check interval: REDIS_HEALTH_CHECK_INTERVAL
    - Decoded responses (str, not bytes)
    """

    def __init__(self, settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    def _build_pool(self) -> ConnectionPool:
        redis_settings = self._settings.redis
        kwargs: dict[str, Any] = dict(
            host=redis_settings.REDIS_HOST,
            port=redis_settings.REDIS_PORT,
            db=redis_settings.REDIS_DB,
            password=redis_settings.REDIS_PASSWORD,
            max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
            health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
            decode_responses=True,
        )
        if redis_settings.REDIS_SSL:
            kwargs["connection_class"] = redis.SSLConnection
        return ConnectionPool(**kwargs)

    async def connect(self, attempts: int | None = None) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Transient connection errors are retried with exponential jitter
        backoff up to ``attempts`` (default REDIS_CONNECT_RETRIES) attempts.

        Raises:
            CacheConnectionError: If every attempt fails
        """
        if self._is_connected and self._client:
            return self._client

        retrying = create_retry_decorator(
            max_attempts=attempts or self._settings.redis.REDIS_CONNECT_RETRIES,
            retry_exceptions=(ConnectionError, TimeoutError),
        )

        @retrying
        async def open_and_ping() -> redis.Redis:
            self._pool = self._build_pool()
            client = redis.Redis(connection_pool=self._pool)
            try:
                await client.ping()
            except (ConnectionError, TimeoutError):
                await self._pool.disconnect()
                raise
            return client

        try:
            self._client = await open_and_ping()
        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", stage="REDIS.2", error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={
                    "host": self._settings.redis.REDIS_HOST,
                    "port": self._settings.redis.REDIS_PORT,
                },
            ) from e

        self._is_connected = True
        logger.info(
            "Redis connected successfully",
            stage="REDIS.2",
            host=self._settings.redis.REDIS_HOST,
            port=self._settings.redis.REDIS_PORT,
            max_connections=self._settings.redis.REDIS_MAX_CONNECTIONS,
        )
        return self._client

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False

        logger.info("Redis disconnected", stage="REDIS.3")

    async def ping(self) -> bool:
        try:
            if self._client and self._is_connected:
                await self._client.ping()
                return True
        except RedisError:
            pass
        return False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Executes Redis commands with error handling and logging
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Error Handling Strategy:
    - Catch RedisError exceptions
    - Log with stage and key
    - Raise CacheKeyError with details
    """

    SCAN_COUNT = 500

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        """
        Get value from Redis.

        STAGE-REDIS.GET: Redis GET operation
        """
        try:
            return await self._redis.get(key)
        except RedisError as e:
            logger.warning("Redis GET failed", stage="REDIS.GET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis GET failed: {e}", details={"key": key}) from e

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value in Redis, with an expiry when ttl is given.

        STAGE-REDIS.SET: Redis SET operation
        """
        try:
            result = await self._redis.set(key, value, ex=ttl)
            return bool(result)
        except RedisError as e:
            logger.warning("Redis SET failed", stage="REDIS.SET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SET failed: {e}", details={"key": key}) from e

    async def delete(self, *keys: str) -> int:
        """
        Delete keys from Redis.

        STAGE-REDIS.DEL: Redis DELETE operation
        """
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except RedisError as e:
            logger.warning("Redis DELETE failed", stage="REDIS.DEL", keys=keys, error=str(e))
            raise CacheKeyError(
                message=f"Redis DELETE failed: {e}", details={"keys": list(keys)}
            ) from e

    async def keys(self, pattern: str = "*") -> list[str]:
        """
        List keys matching a glob pattern.

        STAGE-REDIS.SCAN: incremental SCAN instead of KEYS, so a large
        keyspace never blocks the server.
        """
        try:
            found: list[str] = []
            async for key in self._redis.scan_iter(match=pattern, count=self.SCAN_COUNT):
                found.append(key)
            return found
        except RedisError as e:
            logger.warning("Redis SCAN failed", stage="REDIS.SCAN", pattern=pattern, error=str(e))
            raise CacheKeyError(
                message=f"Redis SCAN failed: {e}", details={"pattern": pattern}
            ) from e


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool size and utilization (warning above 80%)
    """

    def __init__(self, connection_manager: ConnectionManager, settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on Redis connection.

        STAGE-REDIS.HEALTH: Redis health check
        """
        health = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "pool_size": 0,
            "pool_in_use": 0,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool and pool.max_connections:
            in_use = len(getattr(pool, "_in_use_connections", ()))
            utilization = 100.0 * in_use / pool.max_connections
            health["pool_size"] = pool.max_connections
            health["pool_in_use"] = in_use
            health["pool_utilization_pct"] = round(utilization, 1)
            if utilization > 80:
                health["pool_warning"] = True
                logger.warning(
                    "Redis pool utilization high",
                    pool_utilization=utilization,
                    max_connections=pool.max_connections,
                )

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client implementing the KeyValueStore protocol.

    Usage:
        client = RedisClient()
        await client.connect()

        await client.set("sizes:options", payload, ttl=7200)
        value = await client.get("sizes:options")
        keys = await client.keys("user:orders:42:*")

        await client.disconnect()
    """

    def __init__(self, settings=None):
        """
        Initialize Redis client.

        STAGE-REDIS.1: Client initialization
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)
        # set once connect() has been called; a lost connection is then reopened lazily
        self._wanted = False
        self._reconnect_lock = asyncio.Lock()

    async def connect(self) -> None:
        """
        Establish connection to Redis with connection pooling.

        Raises:
            CacheConnectionError: If connection fails
        """
        self._wanted = True
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def disconnect(self) -> None:
        self._wanted = False
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    @property
    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    async def _require_executor(self) -> OperationExecutor:
        if self._executor is not None:
            return self._executor
        if not self._wanted:
            raise CacheConnectionError(
                message="Redis client is not connected",
                details={"host": self._settings.redis.REDIS_HOST},
            )
        async with self._reconnect_lock:
            if self._executor is None:
                logger.info("Reconnecting to Redis", stage="REDIS.2")
                client = await self._conn_mgr.connect(attempts=1)
                self._executor = OperationExecutor(client)
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Get value from Redis."""
        executor = await self._require_executor()
        return await executor.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value in Redis with optional TTL."""
        executor = await self._require_executor()
        return await executor.set(key, value, ttl=ttl)

    async def delete(self, *keys: str) -> int:
        """Delete keys from Redis."""
        executor = await self._require_executor()
        return await executor.delete(*keys)

    async def keys(self, pattern: str = "*") -> list[str]:
        """List keys matching a glob pattern."""
        executor = await self._require_executor()
        return await executor.keys(pattern)

    async def health_check(self) -> dict[str, Any]:
        """Perform health check on Redis connection."""
        return await self._health_monitor.health_check()


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    """
    Get the global Redis client instance (singleton).

    Returns:
        RedisClient: Global Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = RedisClient()

    return _redis_client


async def init_redis() -> RedisClient:
    """
    Initialize and connect the global Redis client.

    Returns:
        RedisClient: Connected Redis client
    """
    client = get_redis_client()
    await client.connect()
    return client


async def close_redis() -> None:
    """Close the global Redis client."""
    global _redis_client

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
