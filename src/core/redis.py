"""Device-local key-value storage backed by Redis, with graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Keys are scanned in batches of this size during namespace purges
SCAN_BATCH_SIZE = 200


class RedisClient:
    """
    Async key-value store for the bearer token, the current user slot, and cached data.

    Every operation returns a safe default (None, False, or an empty list) when Redis is
    disabled, unreachable, or raises, so storage problems never propagate into the auth
    flow.
    """

    def __init__(
        self,
        url: str,
        enabled: bool = True,
        pool_size: int = 10,
        client: Redis | None = None,
    ) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        # A pre-built client (e.g. fakeredis in tests) skips pool creation
        self._injected = client

    async def connect(self) -> None:
        """Open the store and verify it answers."""
        if not self._enabled:
            logger.info("storage_disabled")
            return
        try:
            if self._injected is not None:
                self._client = self._injected
            else:
                self._pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
                self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
        except RedisError as e:
            logger.warning("storage_connect_failed url=%s error=%s", self._url, e)
            self._client = None
            self._pool = None
            return
        logger.info("storage_connected url=%s", self._url)

    async def close(self) -> None:
        """Release the connection (pool)."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        self._pool = None
        logger.info("storage_closed")

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def get(self, key: str) -> bytes | None:
        """Read a value; None when missing or storage is unavailable."""
        if self._client is None:
            return None
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("storage_get_failed key=%s error=%s", key, e)
            return None

    async def set(self, key: str, value: str | bytes) -> bool:
        """
        Write a value without expiry.

        Returns only after Redis has acknowledged the write, so a subsequent read on any
        connection observes the new value.

        Returns:
            True if acknowledged, False if storage is unavailable.
        """
        if self._client is None:
            return False
        try:
            await self._client.set(key, value)
        except RedisError as e:
            logger.warning("storage_set_failed key=%s error=%s", key, e)
            return False
        return True

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        """Write a value that expires after `seconds`. False if storage is unavailable."""
        if self._client is None:
            return False
        try:
            await self._client.setex(key, seconds, value)
        except RedisError as e:
            logger.warning("storage_setex_failed key=%s error=%s", key, e)
            return False
        return True

    async def delete(self, *keys: str) -> bool:
        """
        Remove keys in one round-trip. Missing keys are ignored.

        Returns:
            True on success (including when no keys are given), False if storage is
            unavailable.
        """
        if self._client is None:
            return False
        if not keys:
            return True
        try:
            await self._client.delete(*keys)
        except RedisError as e:
            logger.warning("storage_delete_failed count=%s error=%s", len(keys), e)
            return False
        return True

    async def scan_keys(self, pattern: str) -> list[str]:
        """
        List keys matching a glob pattern.

        Uses incremental SCAN rather than KEYS so large key spaces do not block the server.

        Args:
            pattern: Redis glob pattern (e.g. 'cache:v1:user:*').

        Returns:
            Matching keys as strings, or an empty list if storage is unavailable.
        """
        if self._client is None:
            return []
        try:
            keys = [
                key async for key in self._client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE)
            ]
        except RedisError as e:
            logger.warning("storage_scan_failed pattern=%s error=%s", pattern, e)
            return []
        return [key.decode() if isinstance(key, bytes) else key for key in keys]

    async def flushdb(self) -> bool:
        """Drop every key (tests only)."""
        if self._client is None:
            return False
        try:
            await self._client.flushdb()
        except RedisError as e:
            logger.warning("storage_flush_failed error=%s", e)
            return False
        return True
