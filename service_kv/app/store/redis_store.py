"""
Pooled Redis client for the Key-Value Gateway.
"""

from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import BackendError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

T = TypeVar("T")


class KeyValueStore:
    """Byte-oriented GET/SET/DEL/KEYS/FLUSHALL over a shared connection pool.

    Each command borrows a connection from the pool and hands it back when the
    reply arrives, so nothing is held across requests. Redis failures,
    including pool exhaustion and refused connections, are raised as
    ``BackendError``.
    """

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 100,
        metrics: Optional[MetricsCollector] = None,
        client: Optional[redis.Redis] = None,
        deadline_check: Optional[Callable[[], None]] = None,
    ):
        self.redis_url = redis_url
        self.logger = get_logger("kv.store")
        self.metrics = metrics
        self._deadline_check = deadline_check
        if client is None:
            pool = redis.ConnectionPool.from_url(
                redis_url,
                max_connections=max_connections,
                decode_responses=False,
            )
            client = redis.Redis(connection_pool=pool)
        self._redis = client

    async def _execute(self, command: str, operation: Callable[[], Awaitable[T]]) -> T:
        # A request past its deadline must not start a new command.
        if self._deadline_check is not None:
            self._deadline_check()

        try:
            result = await operation()
        except RedisError as e:
            self.logger.error("Redis command failed", command=command, error=str(e))
            if self.metrics:
                self.metrics.record_backend_command(command, "error")
            raise BackendError(e) from e

        if self.metrics:
            self.metrics.record_backend_command(command, "ok")
        return result

    async def get(self, key: str) -> Optional[bytes]:
        return await self._execute("GET", lambda: self._redis.get(key))

    async def set(self, key: str, value: bytes) -> None:
        await self._execute("SET", lambda: self._redis.set(key, value))

    async def delete(self, key: str) -> int:
        """Delete ``key`` and return how many keys were removed."""
        return int(await self._execute("DEL", lambda: self._redis.delete(key)))

    async def keys(self) -> List[str]:
        """Return every key in the store. This is a full ``KEYS *`` scan."""
        raw: List[Any] = await self._execute("KEYS", lambda: self._redis.keys("*"))
        try:
            return [key.decode("utf-8") if isinstance(key, bytes) else str(key) for key in raw]
        except UnicodeDecodeError as e:
            raise BackendError(e) from e

    async def flush_all(self) -> None:
        await self._execute("FLUSHALL", lambda: self._redis.flushall())

    async def ping(self) -> bool:
        return bool(await self._execute("PING", lambda: self._redis.ping()))

    async def close(self) -> None:
        """Close the client and disconnect the pool."""
        await self._redis.aclose(close_connection_pool=True)
        self.logger.info("Redis client closed", redis_url=self.redis_url)
