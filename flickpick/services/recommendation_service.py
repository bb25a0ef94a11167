from __future__ import annotations
from typing import Iterable, List, Optional, Sequence
import hashlib
import re
import time

from ..ai.resolver import FallbackResolver
from ..cache.orchestrator import CacheAside
from ..config import Settings, settings as default_settings
from ..constants import CONTENT_TYPES, MOOD_PROMPTS, MOODS, MOODS_BY_SLUG
from ..errors import InvalidInput
from ..models import DiscoverResponse, RecommendationResult
from ..utils.logger import get_logger

logger = get_logger(__name__)

FILLER_WORDS = {"a", "an", "the", "i", "me", "my", "want", "to", "watch", "see", "find", "show", "give"}
PROMPT_MIN, PROMPT_MAX = 3, 500
BLEND_MIN, BLEND_MAX = 2, 5

def normalize_prompt(prompt: str) -> str:
    """
    Lowercase, drop punctuation and filler words so near-identical prompts share a key.
    """
    text = re.sub(r"\s+", " ", prompt.lower().strip())
    text = re.sub(r"[^\w\s]", "", text)
    return " ".join(w for w in text.split(" ") if w and w not in FILLER_WORDS)

def prompt_hash(normalized: str) -> str:
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

def mood_key(slug: str) -> str:
    return f"mood:{slug}:recommendations"

def discover_key(prompt: str, content_types: Optional[Sequence[str]] = None) -> str:
    types = ",".join(sorted(set(content_types or [])))
    return f"discover:prompt:{prompt_hash(normalize_prompt(prompt) + '|' + types)}"

def blend_key(titles: Iterable[str]) -> str:
    canonical = "|".join(sorted(t.strip().lower() for t in titles))
    return f"blend:{prompt_hash(canonical)}"

def _has_results(result: RecommendationResult) -> bool:
    return bool(result.results)

class RecommendationService:
    """
    Maps mood, free-text and blend requests onto cache keys and resolver calls.
    """

    def __init__(self, resolver: FallbackResolver, cache: CacheAside[RecommendationResult],
                 config: Optional[Settings] = None) -> None:
        self.resolver = resolver
        self.cache = cache
        self.config = config or default_settings

    def _respond(self, result: RecommendationResult, label: str,
                 exclude_ids: Optional[Sequence[int]] = None,
                 exclude_titles: Optional[Iterable[str]] = None) -> DiscoverResponse:
        skip_ids = set(exclude_ids or [])
        skip_titles = {t.strip().lower() for t in (exclude_titles or [])}
        results = [
            r for r in result.results
            if r.id not in skip_ids and r.title.strip().lower() not in skip_titles
        ]
        return DiscoverResponse(results=results, provider=result.provider, is_fallback=result.is_fallback, prompt=label)

    async def mood(self, slug: str) -> DiscoverResponse:
        """
        Recommendations for one of the curated moods, cached for a day.
        """
        mood = MOODS_BY_SLUG.get(slug)
        if mood is None:
            raise InvalidInput(f"Invalid mood: {slug}", f"Valid moods: {', '.join(m.slug for m in MOODS)}")

        prompt = MOOD_PROMPTS.get(slug) or f"Content matching the {mood.name} mood"
        started = time.monotonic()

        async def produce() -> RecommendationResult:
            logger.info("[Mood] Generating recommendations for: %s", slug)
            return await self.resolver.resolve(prompt)

        result = await self.cache.get_cached(mood_key(slug), produce, self.config.mood_cache_ttl_s, should_cache=_has_results)
        logger.info("[Mood] %s - %d results from %s in %.0fms", slug, len(result.results), result.provider,
                    (time.monotonic() - started) * 1000)
        return self._respond(result, mood.name)

    async def discover(self, prompt: str, content_types: Optional[Sequence[str]] = None,
                       exclude_ids: Optional[Sequence[int]] = None) -> DiscoverResponse:
        """
        Free-text discovery; the cache entry is shared across exclusion lists.
        """
        text = (prompt or "").strip()
        if not PROMPT_MIN <= len(text) <= PROMPT_MAX:
            raise InvalidInput("Invalid request", f"prompt: must be between {PROMPT_MIN} and {PROMPT_MAX} characters")
        unknown = [t for t in content_types or [] if t not in CONTENT_TYPES]
        if unknown:
            raise InvalidInput("Invalid request", f"contentTypes: unknown value(s) {', '.join(unknown)}")
        types = list(content_types) if content_types else None

        async def produce() -> RecommendationResult:
            logger.info("[Discover] Processing request: %r", text[:50])
            return await self.resolver.resolve(text, types)

        result = await self.cache.get_cached(
            discover_key(text, types), produce, self.config.discover_cache_ttl_s, should_cache=_has_results,
        )
        return self._respond(result, text, exclude_ids=exclude_ids)

    async def blend(self, titles: Sequence[str], exclude_ids: Optional[Sequence[int]] = None) -> DiscoverResponse:
        """
        Content that combines the feel of 2-5 source titles, independent of their order.
        """
        cleaned: List[str] = [t.strip() for t in titles or [] if t and t.strip()]
        if not BLEND_MIN <= len(cleaned) <= BLEND_MAX:
            raise InvalidInput("Invalid request", f"titles: between {BLEND_MIN} and {BLEND_MAX} non-empty titles required")

        ordered = sorted(cleaned, key=str.lower)
        prompt = (
            "Find movies and TV shows that combine the essence of: "
            + ", ".join(f'"{t}"' for t in ordered)
            + ". Look for content that shares themes, tone, or style with all of these."
        )

        async def produce() -> RecommendationResult:
            logger.info("[Blend] Blending %d titles", len(ordered))
            return await self.resolver.resolve(prompt)

        result = await self.cache.get_cached(blend_key(cleaned), produce, self.config.blend_cache_ttl_s, should_cache=_has_results)
        return self._respond(result, " + ".join(ordered), exclude_ids=exclude_ids, exclude_titles=cleaned)
