"""Redis client used as the shared store for the persisted query cache.

The client is optional: without ``REDIS_URL`` the query cache persists to a
local JSON file instead. Redis failures are logged and reported as misses so a
flaky Redis never takes a request down.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from redis.asyncio import ConnectionPool, Redis, SSLConnection
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    ssl: bool = False
    max_connections: int = 10
    socket_timeout: float = 2.0

    @classmethod
    def from_url(cls, redis_url: str) -> "CacheConfig":
        """Parse ``redis://[:password@]host[:port][/db]`` (``rediss://`` enables TLS)."""
        parsed = urlparse(redis_url)
        if parsed.scheme not in {"redis", "rediss"}:
            raise ValueError(f"Unsupported Redis URL scheme: {parsed.scheme!r}")
        db_part = (parsed.path or "").strip("/")
        return cls(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            db=int(db_part) if db_part.isdigit() else 0,
            password=parsed.password,
            ssl=parsed.scheme == "rediss",
        )


class CacheClient:
    """Thin async Redis wrapper storing JSON documents."""

    def __init__(self, config: CacheConfig, *, client: Optional[Redis] = None):
        self.config = config
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client

    async def connect(self) -> None:
        if self._client is not None:
            return
        pool_kwargs: Dict[str, Any] = {
            "host": self.config.host,
            "port": self.config.port,
            "db": self.config.db,
            "password": self.config.password,
            "max_connections": self.config.max_connections,
            "socket_timeout": self.config.socket_timeout,
            "socket_connect_timeout": self.config.socket_timeout,
            "decode_responses": True,
        }
        if self.config.ssl:
            pool_kwargs["connection_class"] = SSLConnection
        self._pool = ConnectionPool(**pool_kwargs)
        self._client = Redis(connection_pool=self._pool)
        logger.info("Connected to Redis at %s:%s/%s", self.config.host, self.config.port, self.config.db)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        logger.info("Redis cache disconnected")

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Cache client not connected. Call connect() first.")
        return self._client

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def get_json(self, key: str, default: Any = None) -> Any:
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            logger.warning("Cache get failed for key %s: %s", key, exc)
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache value for key %s", key)
            return default

    async def set_json(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> bool:
        serialized = json.dumps(value, default=str, ensure_ascii=False)
        try:
            if ttl:
                await self.client.setex(key, int(ttl.total_seconds()), serialized)
            else:
                await self.client.set(key, serialized)
        except RedisError as exc:
            logger.warning("Cache set failed for key %s: %s", key, exc)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            return (await self.client.delete(key)) > 0
        except RedisError as exc:
            logger.warning("Cache delete failed for key %s: %s", key, exc)
            return False


__all__ = ["CacheClient", "CacheConfig"]
