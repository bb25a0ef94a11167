"""
Per-client fixed-window limiter for the AI endpoints.

Counters live in the shared cache store, so with Redis configured every worker
sees the same window.
"""
from __future__ import annotations
from typing import Mapping, Optional

from ..cache.store import CacheStore
from ..errors import CacheStoreError, RateLimitExceeded
from ..utils.logger import get_logger

logger = get_logger(__name__)


def window_key(client: str, endpoint: str) -> str:
    return f"ratelimit:{endpoint}:{client}"


class RateLimiter:
    def __init__(self, store: CacheStore, limit: int, window_s: int) -> None:
        self.store = store
        self.limit = limit
        self.window_s = window_s

    async def hit(self, client: str, endpoint: str) -> bool:
        """Count one request; False once the client is over the limit."""
        try:
            count = await self.store.incr(window_key(client, endpoint), self.window_s)
        except CacheStoreError as e:
            # fail open: a store outage must not lock everyone out
            logger.warning("Rate limit check failed for %s on %s: %s", client, endpoint, e)
            return True
        return count <= self.limit

    async def check(self, client: str, endpoint: str) -> None:
        if not await self.hit(client, endpoint):
            logger.warning("Rate limit exceeded for %s on %s", client, endpoint)
            raise RateLimitExceeded(client, endpoint)


def client_ip(headers: Mapping[str, str], peer: Optional[str]) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return peer or "unknown"
