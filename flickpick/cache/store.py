"""Key/value stores behind the cache-aside orchestrator.

Values are opaque strings (serialized JSON). Backend failures surface as
``CacheStoreError`` so callers can degrade without knowing the backend.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional
import math
import time

from cachetools import TLRUCache
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..config import Settings
from ..errors import CacheStoreError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: str
    stored_at: float
    ttl_seconds: int

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CacheStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def incr(self, key: str, ttl_seconds: int) -> int:
        """
        Increment a counter and return the new value. The TTL starts with the
        first increment and is not extended by later ones.
        """
        ...

    async def close(self) -> None:
        return None


class MemoryCacheStore(CacheStore):
    """
    In-process store with per-entry TTL; least recently used entries go first
    when `maxsize` is reached.
    """

    def __init__(self, maxsize: int = 1024, timer: Callable[[], float] = time.monotonic) -> None:
        self._timer = timer
        # TLRUCache drops an item once timer() >= ttu; an entry is still live at exactly expires_at
        self._entries: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=maxsize,
            ttu=lambda _key, entry, _now: math.nextafter(entry.expires_at, math.inf),
            timer=timer,
        )

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._timer()):
            self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._timer(), ttl_seconds=ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        now = self._timer()
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(now):
            self._entries[key] = CacheEntry(key=key, value="1", stored_at=now, ttl_seconds=ttl_seconds)
            return 1
        count = int(entry.value) + 1
        self._entries[key] = CacheEntry(key=key, value=str(count), stored_at=entry.stored_at,
                                        ttl_seconds=entry.ttl_seconds)
        return count

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore(CacheStore):
    """
    Redis-backed store; expiry is delegated to Redis (SET ... EX ttl).
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout_s: float = 5.0) -> "RedisCacheStore":
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout_s,
            socket_timeout=socket_timeout_s,
            retry_on_timeout=True,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"redis GET {key} failed: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"redis SET {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"redis DEL {key} failed: {e}") from e

    async def incr(self, key: str, ttl_seconds: int) -> int:
        try:
            count = int(await self._client.incr(key))
            if count == 1:
                await self._client.expire(key, ttl_seconds)
            return count
        except (RedisError, OSError) as e:
            raise CacheStoreError(f"redis INCR {key} failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


def build_cache_store(config: Settings) -> CacheStore:
    if config.redis_url:
        logger.info("Using Redis cache store")
        return RedisCacheStore.from_url(config.redis_url, config.redis_socket_timeout_s)
    logger.info("Using in-memory cache store (maxsize=%d)", config.memory_cache_maxsize)
    return MemoryCacheStore(maxsize=config.memory_cache_maxsize)
