"""Cache-aside reads with per-key request coalescing.

At most one producer runs per key at a time; callers arriving while it is in
flight await the same task. Store failures degrade to "always compute" on read
and to "computed but not cached" on write.
"""
from __future__ import annotations
from typing import Awaitable, Callable, Dict, Generic, Optional, Type, TypeVar
import asyncio

from pydantic import BaseModel, ValidationError

from ..models import RecommendationResult
from ..utils.logger import get_logger
from .store import CacheStore

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class CacheAside(Generic[M]):
    def __init__(self, store: CacheStore, model: Type[M] = RecommendationResult) -> None:  # type: ignore[assignment]
        self.store = store
        self.model = model
        self._inflight: Dict[str, "asyncio.Task[M]"] = {}

    def inflight(self, key: str) -> bool:
        return key in self._inflight

    async def _read(self, key: str) -> Optional[M]:
        try:
            raw = await self.store.get(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache read failed for %s, computing fresh: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return self.model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding undecodable cache entry %s: %s", key, e)
            return None

    async def _load(self, key: str, producer: Callable[[], Awaitable[M]], ttl_seconds: int,
                    should_cache: Optional[Callable[[M], bool]]) -> M:
        cached = await self._read(key)
        if cached is not None:
            logger.debug("Cache hit %s", key)
            return cached
        logger.debug("Cache miss %s, computing", key)
        result = await producer()
        if should_cache is not None and not should_cache(result):
            logger.info("Not caching %s", key)
            return result
        try:
            await self.store.set(key, result.model_dump_json(by_alias=True), ttl_seconds)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache write failed for %s, result served uncached: %s", key, e)
        return result

    def _settle(self, key: str, task: "asyncio.Task[M]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # mark the exception retrieved even if every waiter went away
        if not task.cancelled():
            task.exception()

    async def get_cached(self, key: str, producer: Callable[[], Awaitable[M]], ttl_seconds: int,
                         should_cache: Optional[Callable[[M], bool]] = None) -> M:
        """
        Return the cached value for `key`, or run `producer` once and cache its result.
        """
        task = self._inflight.get(key)
        if task is None:
            # registered before the first await so callers arriving during the store read join it
            task = asyncio.ensure_future(self._load(key, producer, ttl_seconds, should_cache))
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._settle(key, t))
        else:
            logger.debug("Joining in-flight computation for %s", key)

        # one caller giving up must not cancel the shared work
        return await asyncio.shield(task)

    async def invalidate(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache invalidation failed for %s: %s", key, e)
