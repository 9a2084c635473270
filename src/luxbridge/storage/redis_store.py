"""Redis credential store backed by ``redis.asyncio`` hashes."""

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from luxbridge.core.exceptions import StoreError

logger = logging.getLogger(__name__)

# Creates the hash only when the key is absent. ARGV[1] is the TTL (0 = none),
# the remaining ARGV entries are alternating field/value pairs.
_PUT_IF_ABSENT_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
redis.call('HSET', KEYS[1], unpack(ARGV, 2))
local ttl = tonumber(ARGV[1])
if ttl > 0 then
    redis.call('EXPIRE', KEYS[1], ttl)
end
return 1
"""


@contextmanager
def _redis_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        logger.error("Redis %s failed for %s: %s", operation, key, e)
        raise StoreError(f"Redis {operation} failed: {e}") from e


class RedisCredentialStore:
    """Credential store using one Redis hash per record.

    The connection is opened lazily by ``ensure_ready``; every command calls
    it first, so callers never need to connect explicitly.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", scan_count: int = 100):
        self.url = url
        self.scan_count = scan_count
        self._client: aioredis.Redis | None = None
        self._put_if_absent = None
        self._connect_lock = asyncio.Lock()

    async def ensure_ready(self) -> None:
        if self._client is not None:
            return
        async with self._connect_lock:
            if self._client is not None:
                return
            client = aioredis.from_url(self.url, decode_responses=True)
            with _redis_errors("connect", self.url):
                await client.ping()
            self._put_if_absent = client.register_script(_PUT_IF_ABSENT_SCRIPT)
            self._client = client
            logger.info("✓ Connected to Redis credential store")

    async def _get_client(self) -> aioredis.Redis:
        await self.ensure_ready()
        if self._client is None:
            raise StoreError(f"Redis client for {self.url} is closed")
        return self._client

    async def put(
        self,
        key: str,
        fields: dict[str, str],
        ttl_seconds: int | None = None,
    ) -> None:
        client = await self._get_client()
        with _redis_errors("put", key):
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if fields:
                    pipe.hset(key, mapping=fields)
                    if ttl_seconds is not None:
                        pipe.expire(key, max(int(ttl_seconds), 1))
                await pipe.execute()

    async def put_if_absent(
        self,
        key: str,
        fields: dict[str, str],
        ttl_seconds: int | None = None,
    ) -> bool:
        if not fields:
            raise ValueError("put_if_absent requires at least one field")
        client = await self._get_client()
        args: list[str | int] = [int(ttl_seconds or 0)]
        for name, value in fields.items():
            args.extend((name, value))
        with _redis_errors("put_if_absent", key):
            created = await self._put_if_absent(keys=[key], args=args, client=client)
        return bool(created)

    async def get_all(self, key: str) -> dict[str, str]:
        client = await self._get_client()
        with _redis_errors("get_all", key):
            return await client.hgetall(key)

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        with _redis_errors("delete", key):
            await client.delete(key)

    async def scan_keys(self, prefix: str) -> list[str]:
        client = await self._get_client()
        with _redis_errors("scan", prefix):
            return [
                key
                async for key in client.scan_iter(
                    match=f"{prefix}*", count=self.scan_count
                )
            ]

    async def ttl(self, key: str) -> int | None:
        client = await self._get_client()
        with _redis_errors("ttl", key):
            remaining = await client.ttl(key)
        # -1: no expiry, -2: missing key
        return remaining if remaining >= 0 else None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._put_if_absent = None
            logger.info("✓ Redis credential store closed")
