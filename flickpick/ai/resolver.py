from __future__ import annotations
from typing import Dict, List, Optional, Sequence
import time

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from ..cache.store import CacheStore
from ..errors import AllProvidersExhausted, ProviderError, ProviderErrorKind
from ..models import RecommendationResult
from ..utils.logger import get_logger
from .base import ProviderAdapter

logger = get_logger(__name__)

def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable

def cooldown_key(provider: str) -> str:
    return f"ai:ratelimit:{provider}"

class FallbackResolver:
    """
    Tries providers in fixed priority order and returns the first usable answer,
    stamped with the provider's name and whether it was the primary.
    """

    def __init__(
        self,
        providers: Sequence[ProviderAdapter],
        store: Optional[CacheStore] = None,
        retry_attempts: int = 3,
        retry_initial_wait: float = 0.5,
        retry_max_wait: float = 3.0,
        rate_limit_cooldown: int = 60,
    ) -> None:
        if not providers:
            raise ValueError("at least one provider is required")
        self.providers: List[ProviderAdapter] = list(providers)
        self.store = store
        self.retry_attempts = max(1, retry_attempts)
        self.retry_initial_wait = retry_initial_wait
        self.retry_max_wait = retry_max_wait
        self.rate_limit_cooldown = rate_limit_cooldown

    async def is_limited(self, provider: ProviderAdapter) -> bool:
        if self.store is None:
            return False
        try:
            return await self.store.get(cooldown_key(provider.name)) is not None
        except Exception:  # noqa: BLE001
            return False

    async def _mark_limited(self, provider: ProviderAdapter) -> None:
        if self.store is None:
            return
        try:
            await self.store.set(cooldown_key(provider.name), "1", self.rate_limit_cooldown)
        except Exception as e:  # noqa: BLE001
            logger.warning("Could not record rate limit for %s: %s", provider.name, e)

    async def _fetch_with_retry(self, provider: ProviderAdapter, prompt: str,
                                content_types: Optional[Sequence[str]]) -> RecommendationResult:
        jitter = min(self.retry_initial_wait, 1.0)
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential_jitter(initial=self.retry_initial_wait, max=self.retry_max_wait, jitter=jitter),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("[AI] %s attempt %d", provider.name, attempt.retry_state.attempt_number)
                return await provider.fetch(prompt, content_types)
        raise AssertionError("unreachable")  # pragma: no cover

    async def resolve(self, prompt: str, content_types: Optional[Sequence[str]] = None) -> RecommendationResult:
        started = time.monotonic()
        last_kind: Optional[ProviderErrorKind] = None

        for index, provider in enumerate(self.providers):
            if not provider.is_available():
                logger.info("[AI] %s not configured, skipping", provider.name)
                last_kind = ProviderErrorKind.UNAVAILABLE
                continue
            if await self.is_limited(provider):
                logger.info("[AI] %s cooling down after rate limit, skipping", provider.name)
                last_kind = ProviderErrorKind.RATE_LIMITED
                continue

            try:
                result = await self._fetch_with_retry(provider, prompt, content_types)
            except ProviderError as e:
                last_kind = e.kind
                logger.warning("[AI] %s failed (%s): %s", provider.name, e.kind.value, e)
                if e.kind is ProviderErrorKind.RATE_LIMITED:
                    await self._mark_limited(provider)
                continue
            except Exception:  # noqa: BLE001
                last_kind = ProviderErrorKind.UNAVAILABLE
                logger.exception("[AI] %s raised unexpectedly", provider.name)
                continue

            logger.info(
                "[AI] %d results from %s in %.0fms", len(result.results), provider.name,
                (time.monotonic() - started) * 1000,
            )
            return result.model_copy(update={"provider": provider.name, "is_fallback": index > 0})

        logger.error("[AI] all %d providers failed after %.0fms", len(self.providers), (time.monotonic() - started) * 1000)
        raise AllProvidersExhausted(last_kind, len(self.providers))

    async def statuses(self) -> List[Dict[str, object]]:
        out: List[Dict[str, object]] = []
        for provider in self.providers:
            out.append({
                "name": provider.name,
                "available": provider.is_available(),
                "limited": await self.is_limited(provider),
                "terminal": provider.terminal,
            })
        return out
